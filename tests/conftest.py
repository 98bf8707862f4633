"""
Pytest fixtures for identity tests.

Unit tests run the flows against in-memory fakes of the account store and
notification sender; bcrypt runs at its minimum cost to keep tests fast.
"""

import asyncio
import dataclasses
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from identity_api.kernel.identity.errors import EmailAlreadyRegisteredError
from identity_api.kernel.identity.identity_service import IdentityService, LoginPolicy
from identity_api.kernel.identity.jwt import TokenConfig, TokenService
from identity_api.kernel.identity.notifications import NotificationDispatcher
from identity_api.kernel.identity.password import PasswordHasher
from identity_api.kernel.identity.ports import Account, NewAccount

TEST_SECRET_KEY = "test-secret-key-for-testing-only-0123456789"
TEST_PASSWORD = "Aa1!aaaa"


class InMemoryAccountStore:
    """AccountStore fake. Keeps soft-deleted rows but never returns them."""

    def __init__(self):
        self.accounts: Dict[int, Account] = {}
        self.inserted: List[NewAccount] = []
        self.last_login_updates: List[Tuple[int, datetime]] = []
        self.fail_last_login = False
        self._next_id = 1

    def _live(self, email: str) -> Optional[Account]:
        for account in self.accounts.values():
            if account.email == email and not account.is_deleted:
                return account
        return None

    async def find_by_normalized_email(self, email: str) -> Optional[Account]:
        return self._live(email)

    async def exists_by_normalized_email(self, email: str) -> bool:
        return self._live(email) is not None

    async def insert(self, account: NewAccount) -> int:
        if self._live(account.email):
            raise EmailAlreadyRegisteredError(account.email)
        account_id = self._next_id
        self._next_id += 1
        self.accounts[account_id] = Account(
            id=account_id,
            full_name=account.full_name,
            email=account.email,
            password_hash=account.password_hash,
            email_confirmed=account.email_confirmed,
            is_active=account.is_active,
        )
        self.inserted.append(account)
        return account_id

    async def update_last_login(self, account_id: int, timestamp: datetime) -> None:
        if self.fail_last_login:
            raise ConnectionError("store unavailable")
        self.accounts[account_id] = dataclasses.replace(
            self.accounts[account_id], last_login_at=timestamp
        )
        self.last_login_updates.append((account_id, timestamp))

    def set_flags(self, account_id: int, **flags) -> None:
        """Simulate the out-of-band confirm/deactivate/delete flows."""
        self.accounts[account_id] = dataclasses.replace(self.accounts[account_id], **flags)


class RecordingNotificationSender:
    """NotificationSender fake that records sends, optionally failing or stalling."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []
        self.fail = False
        self.release: Optional[asyncio.Event] = None

    async def send_confirmation_email(self, to: str, confirmation_link: str) -> None:
        if self.release is not None:
            await self.release.wait()
        if self.fail:
            raise ConnectionRefusedError("smtp down")
        self.sent.append((to, confirmation_link))


@pytest.fixture
def hasher() -> PasswordHasher:
    """bcrypt at minimum cost."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(
        secret_key=TEST_SECRET_KEY,
        issuer="test-issuer",
        audience="test-audience",
        default_expiry_minutes=60,
    )


@pytest.fixture
def token_service(token_config: TokenConfig) -> TokenService:
    return TokenService(token_config)


@pytest.fixture
def account_store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture
def notification_sender() -> RecordingNotificationSender:
    return RecordingNotificationSender()


@pytest.fixture
def login_policy() -> LoginPolicy:
    return LoginPolicy(confirmation_url="https://app.example.com/confirm")


@pytest_asyncio.fixture
async def dispatcher(notification_sender: RecordingNotificationSender):
    dispatcher = NotificationDispatcher(notification_sender)
    yield dispatcher
    if notification_sender.release is not None:
        notification_sender.release.set()
    await dispatcher.drain()


@pytest.fixture
def identity_service(
    account_store: InMemoryAccountStore,
    hasher: PasswordHasher,
    token_service: TokenService,
    dispatcher: NotificationDispatcher,
    login_policy: LoginPolicy,
) -> IdentityService:
    return IdentityService(
        store=account_store,
        hasher=hasher,
        tokens=token_service,
        notifications=dispatcher,
        policy=login_policy,
    )


@pytest.fixture
def make_account(account_store: InMemoryAccountStore, hasher: PasswordHasher) -> Callable[..., Account]:
    """Insert an account directly into the fake store."""

    def _make(
        email: str = "jane@ex.com",
        password: str = TEST_PASSWORD,
        full_name: str = "Jane Doe",
        **flags,
    ) -> Account:
        account_id = account_store._next_id
        account_store._next_id += 1
        account = Account(
            id=account_id,
            full_name=full_name,
            email=email,
            password_hash=hasher.hash(password),
            email_confirmed=flags.pop("email_confirmed", True),
            **flags,
        )
        account_store.accounts[account_id] = account
        return account

    return _make
