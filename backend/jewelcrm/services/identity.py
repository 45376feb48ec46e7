"""Identity-provider collaborator used by user creation.

The engine only needs two operations from the account system: create an
account and, when profile creation fails afterwards, delete it again.
`DatabaseIdentityProvider` keeps accounts in the `users` table and commits
each call in its own session, so the compensating delete always sees the
committed account.
"""

import logging
from typing import Protocol

from sqlalchemy import delete as sa_delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jewelcrm.models.user import User

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    async def create_account(
        self, email: str, full_name: str, metadata: dict | None = None
    ) -> str:
        """Create an account and return its stable user id."""
        ...

    async def delete_account(self, user_id: str) -> None:
        ...


class DatabaseIdentityProvider:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_account(
        self, email: str, full_name: str, metadata: dict | None = None
    ) -> str:
        async with self._session_factory() as db:
            user = User(
                email=email.lower(),
                full_name=full_name,
                user_metadata=metadata,
                is_active=True,
            )
            db.add(user)
            await db.flush()
            user_id = user.id
            await db.commit()
            logger.info("Created account %s for %s", user_id, email)
            return user_id

    async def delete_account(self, user_id: str) -> None:
        async with self._session_factory() as db:
            await db.execute(sa_delete(User).where(User.id == user_id))
            await db.commit()
            logger.info("Deleted account %s", user_id)
