"""
SQLAlchemy-backed account store.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import exists, false, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.kernel.identity.errors import EmailAlreadyRegisteredError
from identity_api.kernel.identity.ports import Account, NewAccount
from identity_api.kernel.models.user import User


def _to_account(user: User) -> Account:
    return Account(
        id=user.id,
        full_name=user.full_name,
        email=user.email,
        password_hash=user.password_hash,
        email_confirmed=user.email_confirmed,
        is_active=user.is_active,
        is_deleted=user.is_deleted,
        last_login_at=user.last_login_at,
    )


class SqlAlchemyAccountStore:
    """
    AccountStore over an AsyncSession.

    Writes run inside SAVEPOINTs so a rejected write leaves the surrounding
    request transaction usable. insert commits before returning: a token
    for the new account is issued and emailed right after, so the row must
    already be durable. Other writes are committed by the session owner.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_normalized_email(self, email: str) -> Optional[Account]:
        query = select(User).where(User.email == email, User.is_deleted == false())
        result = await self.session.execute(query)
        user = result.scalar_one_or_none()
        return _to_account(user) if user else None

    async def exists_by_normalized_email(self, email: str) -> bool:
        query = select(exists().where(User.email == email, User.is_deleted == false()))
        result = await self.session.execute(query)
        return bool(result.scalar())

    async def insert(self, account: NewAccount) -> int:
        user = User(
            full_name=account.full_name,
            email=account.email,
            password_hash=account.password_hash,
            email_confirmed=account.email_confirmed,
            is_active=account.is_active,
            is_deleted=False,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(user)
        except IntegrityError as e:
            raise EmailAlreadyRegisteredError(account.email) from e
        account_id = user.id
        await self.session.commit()
        return account_id

    async def update_last_login(self, account_id: int, timestamp: datetime) -> None:
        async with self.session.begin_nested():
            await self.session.execute(
                update(User).where(User.id == account_id).values(last_login_at=timestamp)
            )
