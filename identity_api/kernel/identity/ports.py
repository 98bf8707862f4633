"""
Interfaces the identity flows depend on.

Stores and senders are supplied by the caller; the flows never touch a
database session or an SMTP connection directly.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


@dataclass(frozen=True)
class Account:
    """Credential record as seen by the identity flows."""
    id: int
    full_name: str
    email: str
    password_hash: str
    email_confirmed: bool = False
    is_active: bool = True
    is_deleted: bool = False
    last_login_at: Optional[datetime] = None


@dataclass(frozen=True)
class NewAccount:
    """Fields needed to create a credential record."""
    full_name: str
    email: str
    password_hash: str
    email_confirmed: bool = False
    is_active: bool = True


class AccountStore(Protocol):
    """Account persistence. Soft-deleted accounts are invisible to every lookup."""

    async def find_by_normalized_email(self, email: str) -> Optional[Account]:
        """Return the live account with this (already normalized) email, or None."""
        ...

    async def exists_by_normalized_email(self, email: str) -> bool:
        """Return True if a live account uses this (already normalized) email."""
        ...

    async def insert(self, account: NewAccount) -> int:
        """
        Persist a new account and return its ID.

        The account is durable when this returns; the caller issues and
        sends a token for it straight away.

        Raises EmailAlreadyRegisteredError when the uniqueness constraint
        on email rejects the row.
        """
        ...

    async def update_last_login(self, account_id: int, timestamp: datetime) -> None:
        """Record a successful login."""
        ...


class NotificationSender(Protocol):
    """Outbound account notifications."""

    async def send_confirmation_email(self, to: str, confirmation_link: str) -> None:
        ...
