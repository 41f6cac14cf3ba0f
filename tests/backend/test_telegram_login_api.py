from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from backend.app.main import create_app
from packages.common_settings.settings import load_settings
from packages.db.repository import UserRepository
from packages.db.schemas import TelegramUserUpsert


class FakeDatabase:
    """Вместо Postgres: сессия-заглушка и счётчик обращений."""

    def __init__(self, healthy: bool = True) -> None:
        self.healthy = healthy
        self.sessions_opened = 0

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[object, None]:
        self.sessions_opened += 1
        yield object()

    async def healthcheck(self) -> bool:
        return self.healthy


@pytest.fixture
def upserts(monkeypatch: pytest.MonkeyPatch) -> list[TelegramUserUpsert]:
    calls: list[TelegramUserUpsert] = []

    async def fake_upsert(session: object, payload: TelegramUserUpsert) -> object:
        calls.append(payload)
        return object()

    monkeypatch.setattr(UserRepository, "upsert", fake_upsert)
    return calls


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def app(required_env: dict[str, str], fake_db: FakeDatabase) -> FastAPI:
    return create_app(load_settings(), db=fake_db)  # type: ignore[arg-type]


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


class TestTelegramLogin:
    def test_valid_login(
        self,
        client: TestClient,
        signed_payload: Callable[..., dict[str, Any]],
        upserts: list[TelegramUserUpsert],
    ) -> None:
        payload = signed_payload(id=42, first_name="Grace")

        r = client.post("/telegram-login", json=payload)

        assert r.status_code == 200
        assert r.json() == {
            "success": True,
            "message": "Login successful",
            "user": {
                "id": 42,
                "username": None,
                "first_name": "Grace",
                "last_name": "",
                "photo_url": None,
            },
        }
        assert len(upserts) == 1
        assert upserts[0].telegram_id == "42"
        assert upserts[0].first_name == "Grace"
        assert upserts[0].last_name == ""

    def test_response_never_echoes_hash_or_token(
        self,
        client: TestClient,
        signed_payload: Callable[..., dict[str, Any]],
        required_env: dict[str, str],
        upserts: list[TelegramUserUpsert],
    ) -> None:
        payload = signed_payload(id=42, first_name="Grace")

        r = client.post("/telegram-login", json=payload)

        assert "hash" not in r.json()["user"]
        assert payload["hash"] not in r.text
        assert required_env["TELEGRAM_BOT_TOKEN"] not in r.text

    def test_full_profile_normalized(
        self,
        client: TestClient,
        signed_payload: Callable[..., dict[str, Any]],
        upserts: list[TelegramUserUpsert],
    ) -> None:
        payload = signed_payload(
            id=1001,
            first_name="Ada Lovelace",
            username="ada",
            photo_url="https://t.me/i/userpic/320/ada.jpg",
            auth_date=1700000000,
        )

        r = client.post("/telegram-login", json=payload)

        assert r.status_code == 200
        user = r.json()["user"]
        assert (user["first_name"], user["last_name"]) == ("Ada", "Lovelace")
        assert user["photo_url"] == "https://t.me/i/userpic/320/ada.jpg"
        stored = upserts[0]
        assert stored.picture == "https://t.me/i/userpic/320/ada.jpg"
        assert stored.auth_date == datetime.fromisoformat("2023-11-14T22:13:20+00:00")

    @pytest.mark.parametrize(
        "payload",
        [
            {"first_name": "Grace", "hash": "abc"},
            {"id": 42, "first_name": "Grace"},
            {"id": "", "hash": "abc"},
            {},
        ],
    )
    def test_missing_required_fields(
        self, client: TestClient, upserts: list[TelegramUserUpsert], payload: dict[str, Any]
    ) -> None:
        r = client.post("/telegram-login", json=payload)

        assert r.status_code == 400
        assert r.json() == {
            "success": False,
            "message": "Missing required fields: id and hash are required",
        }
        assert upserts == []

    def test_empty_body(self, client: TestClient, upserts: list[TelegramUserUpsert]) -> None:
        r = client.post("/telegram-login")

        assert r.status_code == 400
        assert r.json()["success"] is False

    @pytest.mark.parametrize(
        ("content", "content_type"),
        [
            (b'[{"id": 42, "hash": "abc"}]', "application/json"),
            (b'"id=42"', "application/json"),
            (b'{"id": 42, "hash": ', "application/json"),
        ],
    )
    def test_non_object_body_is_bad_request(
        self,
        client: TestClient,
        upserts: list[TelegramUserUpsert],
        content: bytes,
        content_type: str,
    ) -> None:
        r = client.post("/telegram-login", content=content, headers={"Content-Type": content_type})

        assert r.status_code == 400
        assert r.json() == {"success": False, "message": "Malformed Telegram authentication data"}
        assert upserts == []

    def test_nested_value_rejected(
        self,
        client: TestClient,
        signed_payload: Callable[..., dict[str, Any]],
        upserts: list[TelegramUserUpsert],
    ) -> None:
        payload = {**signed_payload(id=42), "user": {"id": 42}}

        r = client.post("/telegram-login", json=payload)

        assert r.status_code == 400
        assert upserts == []

    def test_tampered_hash_rejected_without_upsert(
        self,
        client: TestClient,
        signed_payload: Callable[..., dict[str, Any]],
        upserts: list[TelegramUserUpsert],
        fake_db: FakeDatabase,
    ) -> None:
        payload = signed_payload(id=42, first_name="Grace")
        h = payload["hash"]
        payload["hash"] = h[:-1] + ("0" if h[-1] != "0" else "1")

        r = client.post("/telegram-login", json=payload)

        assert r.status_code == 401
        assert r.json() == {"success": False, "message": "Invalid Telegram authentication data"}
        assert upserts == []
        assert fake_db.sessions_opened == 0

    def test_tampered_field_rejected(
        self,
        client: TestClient,
        signed_payload: Callable[..., dict[str, Any]],
        upserts: list[TelegramUserUpsert],
    ) -> None:
        payload = signed_payload(id=42, first_name="Grace")
        payload["first_name"] = "Grade"

        r = client.post("/telegram-login", json=payload)

        assert r.status_code == 401
        assert upserts == []

    def test_database_error_is_generic_500(
        self,
        client: TestClient,
        signed_payload: Callable[..., dict[str, Any]],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken_upsert(session: object, payload: TelegramUserUpsert) -> object:
            raise OperationalError("INSERT INTO users", {}, Exception("connection refused by pg-internal-7"))

        monkeypatch.setattr(UserRepository, "upsert", broken_upsert)

        r = client.post("/telegram-login", json=signed_payload(id=42, first_name="Grace"))

        assert r.status_code == 500
        assert r.json() == {"success": False, "message": "Database error occurred"}
        assert "pg-internal-7" not in r.text

    def test_unreachable_database_is_database_error(
        self,
        client: TestClient,
        signed_payload: Callable[..., dict[str, Any]],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def refused_upsert(session: object, payload: TelegramUserUpsert) -> object:
            raise ConnectionRefusedError(111, "Connect call failed ('127.0.0.1', 5432)")

        monkeypatch.setattr(UserRepository, "upsert", refused_upsert)

        r = client.post("/telegram-login", json=signed_payload(id=42, first_name="Grace"))

        assert r.status_code == 500
        assert r.json() == {"success": False, "message": "Database error occurred"}
        assert "127.0.0.1" not in r.text

    def test_unexpected_error_is_generic_500(
        self,
        app: FastAPI,
        signed_payload: Callable[..., dict[str, Any]],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def exploding_upsert(session: object, payload: TelegramUserUpsert) -> object:
            raise RuntimeError("something internal")

        monkeypatch.setattr(UserRepository, "upsert", exploding_upsert)
        client = TestClient(app, raise_server_exceptions=False)

        r = client.post("/telegram-login", json=signed_payload(id=42, first_name="Grace"))

        assert r.status_code == 500
        assert r.json() == {"success": False, "message": "Internal server error"}
        assert "something internal" not in r.text


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        r = client.get("/health")

        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "OK"
        assert body["service"] == "Telegram Login Backend"
        assert datetime.fromisoformat(body["timestamp"]).tzinfo is not None

    def test_ping(self, client: TestClient) -> None:
        assert client.get("/ping").json() == {"ok": True}

    def test_root(self, client: TestClient) -> None:
        r = client.get("/")

        assert r.status_code == 200
        assert "working" in r.text

    def test_health_db(self, client: TestClient) -> None:
        assert client.get("/health/db").json() == {"database": "ok"}

    def test_health_db_unavailable(self, required_env: dict[str, str]) -> None:
        app = create_app(load_settings(), db=FakeDatabase(healthy=False))  # type: ignore[arg-type]

        r = TestClient(app).get("/health/db")

        assert r.status_code == 503


class TestStartup:
    def test_refuses_to_start_without_bot_token(
        self, required_env: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("TELEGRAM_BOT_TOKEN")

        with pytest.raises(SystemExit):
            create_app()
