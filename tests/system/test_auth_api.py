"""
System test: register, confirm, login and token use through the HTTP API.
Runs the app in-process against a temp-file SQLite database.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.config import Settings
from identity_api.database import close_db, init_db
from identity_api.kernel.identity.notifications import NotificationDispatcher
from identity_api.kernel.models import User
from identity_api.main import create_app

PASSWORD = "Str0ng!Pass"


@pytest_asyncio.fixture
async def app(tmp_path):
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'identity.db'}",
        secret_key="system-test-secret-key-0123456789abcdef",
        bcrypt_rounds=4,
        confirmation_url="https://app.example.com/confirm",
    )
    app = create_app(settings)
    # ASGITransport does not run the lifespan
    await init_db(app.state.engine)
    try:
        yield app
    finally:
        await app.state.notifications.drain()
        await close_db(app.state.engine)


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def _register(client: AsyncClient, email: str = "Jane@Example.com") -> dict:
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "full_name": "Jane Doe",
            "email": email,
            "password": PASSWORD,
            "confirm_password": PASSWORD,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _confirm(app, subject_id: int) -> None:
    """Stand-in for the out-of-band email confirmation flow."""
    async with app.state.session_maker() as session:
        await session.execute(update(User).where(User.id == subject_id).values(email_confirmed=True))
        await session.commit()


async def _login(client: AsyncClient, remember_me: bool = False, password: str = PASSWORD):
    return await client.post(
        "/api/v1/auth/login",
        json={"email": "jane@example.com", "password": password, "remember_me": remember_me},
    )


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "1.0.0"}
    assert response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"


@pytest.mark.asyncio
async def test_register_returns_token(app, client: AsyncClient):
    data = await _register(client)

    assert data["email"] == "jane@example.com"
    assert isinstance(data["subject_id"], int)
    assert data["message"].startswith("User registered successfully")
    claims = app.state.tokens.validate(data["token"])
    assert claims.sub == str(data["subject_id"])


@pytest.mark.asyncio
async def test_register_reports_every_validation_error(client: AsyncClient):
    response = await client.post(
        "/api/v1/auth/register",
        json={"full_name": "Jo", "email": "nope", "password": "weak", "confirm_password": "weaker"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "validation_failed"
    assert body["errors"] == [
        "Full name must be between 3 and 100 characters",
        "Invalid email format",
        "Password must be at least 8 characters",
        "Password must contain at least one uppercase letter",
        "Password must contain at least one number",
        "Password must contain at least one special character",
        "Passwords do not match",
    ]


@pytest.mark.asyncio
async def test_register_with_empty_body(client: AsyncClient):
    response = await client.post("/api/v1/auth/register", json={})

    assert response.status_code == 400
    assert "Full name is required" in response.json()["errors"]


@pytest.mark.asyncio
async def test_register_wrong_json_types_is_422(client: AsyncClient):
    response = await client.post("/api/v1/auth/register", json={"full_name": ["x"]})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient):
    await _register(client)

    response = await client.post(
        "/api/v1/auth/register",
        json={
            "full_name": "Other Jane",
            "email": "  JANE@example.COM ",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
        },
    )

    assert response.status_code == 400
    assert response.json()["code"] == "duplicate_email"
    assert response.json()["errors"] == ["Email is already registered"]


@pytest.mark.asyncio
async def test_login_requires_confirmed_email(client: AsyncClient):
    await _register(client)

    response = await _login(client)

    assert response.status_code == 403
    assert response.json()["code"] == "email_not_confirmed"


@pytest.mark.asyncio
async def test_login_disabled_account(app, client: AsyncClient):
    registered = await _register(client)
    async with app.state.session_maker() as session:
        await session.execute(
            update(User)
            .where(User.id == registered["subject_id"])
            .values(email_confirmed=True, is_active=False)
        )
        await session.commit()

    response = await _login(client)

    assert response.status_code == 403
    assert response.json()["code"] == "account_disabled"


@pytest.mark.asyncio
async def test_login_wrong_password_and_unknown_email_look_alike(app, client: AsyncClient):
    registered = await _register(client)
    await _confirm(app, registered["subject_id"])

    wrong_password = await _login(client, password="Wr0ng!Pass")
    unknown_email = await client.post(
        "/api/v1/auth/login",
        json={"email": "nobody@example.com", "password": "Wr0ng!Pass"},
    )

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["errors"] == ["Invalid email or password"]


@pytest.mark.asyncio
async def test_login_validation(client: AsyncClient):
    response = await client.post("/api/v1/auth/login", json={"email": "", "password": ""})

    assert response.status_code == 400
    assert response.json()["errors"] == ["Email is required", "Password is required"]


@pytest.mark.asyncio
@pytest.mark.parametrize("remember_me, hours", [(False, 24), (True, 720)])
async def test_login_and_use_token(app, client: AsyncClient, remember_me: bool, hours: int):
    registered = await _register(client)
    await _confirm(app, registered["subject_id"])
    before = datetime.now(timezone.utc)

    response = await _login(client, remember_me=remember_me)

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["subject_id"] == registered["subject_id"]
    assert data["display_name"] == "Jane Doe"
    expires_at = datetime.fromisoformat(data["expires_at"].replace("Z", "+00:00"))
    assert abs((expires_at - (before + timedelta(hours=hours))).total_seconds()) <= 5

    headers = {"Authorization": f"Bearer {data['token']}"}
    me = await client.get("/api/v1/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["subject_id"] == str(registered["subject_id"])
    assert me.json()["email"] == "jane@example.com"
    assert me.json()["name"] == "Jane Doe"

    logout = await client.post("/api/v1/auth/logout", headers=headers)
    assert logout.status_code == 200


@pytest.mark.asyncio
async def test_login_records_last_login(app, client: AsyncClient):
    registered = await _register(client)
    await _confirm(app, registered["subject_id"])

    assert (await _login(client)).status_code == 200

    async with app.state.session_maker() as session:
        user = await session.get(User, registered["subject_id"])
        assert user.last_login_at is not None


@pytest.mark.asyncio
async def test_me_requires_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"


@pytest.mark.asyncio
async def test_me_rejects_invalid_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


class _RecordingSender:
    def __init__(self):
        self.sent = []

    async def send_confirmation_email(self, to: str, confirmation_link: str) -> None:
        self.sent.append((to, confirmation_link))


@pytest.mark.asyncio
async def test_register_emails_token_of_persisted_account(app, client: AsyncClient):
    sender = _RecordingSender()
    app.state.notifications = NotificationDispatcher(sender)

    data = await _register(client)
    await app.state.notifications.drain()

    assert sender.sent == [
        ("jane@example.com", f"https://app.example.com/confirm?token={data['token']}")
    ]
    async with app.state.session_maker() as session:
        assert await session.get(User, data["subject_id"]) is not None


@pytest.mark.asyncio
async def test_register_sends_nothing_when_commit_fails(app, monkeypatch):
    sender = _RecordingSender()
    app.state.notifications = NotificationDispatcher(sender)

    async def _lost(self):
        raise ConnectionError("commit lost")

    monkeypatch.setattr(AsyncSession, "commit", _lost)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(
            "/api/v1/auth/register",
            json={
                "full_name": "Jane Doe",
                "email": "jane@example.com",
                "password": PASSWORD,
                "confirm_password": PASSWORD,
            },
        )
    await app.state.notifications.drain()

    assert response.status_code == 500
    assert sender.sent == []
    async with app.state.session_maker() as session:
        assert await session.scalar(select(func.count()).select_from(User)) == 0
