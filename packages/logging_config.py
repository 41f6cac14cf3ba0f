import atexit
import html
import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from typing import Optional

import requests
import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from packages.common_settings.settings import Settings


class CustomFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(fmt="[%(asctime)s] %(levelname)s - %(filename)s:%(lineno)d" " - %(name)s - %(message)s")


class APINotificationHandler(logging.Handler):
    """Шлёт ERROR-записи админу в Telegram через Bot API."""

    def __init__(self, token: str, admin: int, *, timeout: float = 5.0) -> None:
        super().__init__()
        self.url = f"https://api.telegram.org/bot{token}/sendMessage"
        self.admin = admin
        self.timeout = timeout
        self.formatter = CustomFormatter()

    def build_payload(self, record: logging.LogRecord) -> dict[str, object]:
        log_entry = self.format(record)
        log_entry = log_entry.replace("[", "\n[").replace("]", "]\n")
        return {
            "chat_id": self.admin,
            "text": f"<code>{html.escape(log_entry)}</code>",
            "parse_mode": "HTML",
        }

    def emit(self, record: logging.LogRecord) -> None:
        try:
            requests.post(self.url, json=self.build_payload(record), timeout=self.timeout)
        except Exception:
            # Не роняем приложение, если отправка в телегу упала
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:
        # URL содержит токен бота: никаких трейсбеков и текста исключения
        if not logging.raiseExceptions or sys.stderr is None:
            return
        exc = sys.exc_info()[1]
        reason = type(exc).__name__ if exc is not None else "unknown error"
        sys.stderr.write(
            f"--- Telegram notification failed ({reason}) for record from {record.name}\n"
        )


# Отправка в Telegram идёт в отдельном потоке, чтобы не блокировать event loop
_notification_listener: Optional[QueueListener] = None


def start_notifications(handler: logging.Handler) -> QueueHandler:
    """Запустить фоновую отправку; вернуть хендлер для root."""
    global _notification_listener
    stop_notifications()
    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(-1)
    _notification_listener = QueueListener(
        log_queue, handler, respect_handler_level=True
    )
    _notification_listener.start()
    queue_handler = QueueHandler(log_queue)
    queue_handler.setLevel(handler.level)
    return queue_handler


def stop_notifications() -> None:
    """Дослать очередь и остановить поток отправки."""
    global _notification_listener
    if _notification_listener is not None:
        _notification_listener.stop()
        _notification_listener = None


atexit.register(stop_notifications)


NOISY_LOGGERS = {
    "asyncio": logging.WARNING,
    "httpcore.connection": logging.INFO,
    "httpcore.http11": logging.INFO,
    "httpx": logging.ERROR,
    "sqlalchemy.engine.Engine": logging.ERROR,
    "urllib3": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.INFO,  # access-лог обычно шумный
}


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Настраивает логирование, уведомления в Telegram и Sentry."""
    debug = bool(settings.debug) if settings is not None else False
    level = logging.DEBUG if debug else logging.INFO

    stop_notifications()
    for h in logging.root.handlers[:]:
        logging.root.removeHandler(h)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(level)
    stream_handler.setFormatter(CustomFormatter())

    logging.basicConfig(level=level, handlers=[stream_handler])
    logging.getLogger().setLevel(level)

    for name, lvl in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(lvl if debug else max(lvl, logging.INFO))

    logger = logging.getLogger(__name__)
    if settings is None:
        return

    # Хендлер для Telegram: на root, чтобы ловить ошибки везде
    if settings.telegram.admin_id:
        api_handler = APINotificationHandler(
            settings.telegram.bot_token.get_secret_value(),
            int(settings.telegram.admin_id),
        )
        api_handler.setLevel(logging.ERROR)
        logging.getLogger().addHandler(start_notifications(api_handler))

    if settings.sentry.dsn and not debug:
        sentry_sdk.init(
            dsn=str(settings.sentry.dsn),
            send_default_pii=False,
            integrations=[LoggingIntegration(event_level=logging.ERROR)],
            environment=settings.env,
            traces_sample_rate=1.0,
        )
        logger.info("✅ Sentry инициализирован.")
    else:
        logger.warning("⚠️ SENTRY_DSN не задан. Sentry не активен.")
