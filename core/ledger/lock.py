"""
계정 쓰기 잠금

동시에 같은 계정 잔액을 확인하고 출금하는 두 트랜잭션을 직렬화.
locks 컬렉션의 (account, book) 문서를 트랜잭션 안에서 갱신해
MongoDB write conflict를 유도함. 늦게 커밋한 쪽이 실패.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable

from motor.motor_asyncio import AsyncIOMotorClientSession

from core.ledger.errors import SessionRequiredError

if TYPE_CHECKING:
    from core.ledger.book import Book

logger = logging.getLogger(__name__)


class WriteLockRegistry:
    """계정별 잠금 문서 관리

    잠금 문서는 updatedAt TTL 인덱스로 만료 (lock_indexes 참고).
    """

    def __init__(self, book: Book):
        self.book = book

    async def writelock_accounts(
        self,
        accounts: Iterable[str],
        session: AsyncIOMotorClientSession | None,
    ) -> Book:
        """계정 잠금

        트랜잭션의 마지막 작업으로 호출해야 write conflict 구간이 최소화됨.
        중복 계정은 한 번만 갱신.

        Args:
            accounts: 잠글 계정 목록
            session: 진행 중인 트랜잭션 세션 (필수)

        Returns:
            Book (체이닝용)

        Raises:
            SessionRequiredError: session 없음
        """
        if session is None:
            raise SessionRequiredError("Session is required for writelock_accounts")

        unique_accounts = list(dict.fromkeys(accounts))
        now = datetime.now(timezone.utc)

        for account in unique_accounts:
            await self.book.db.locks.update_one(
                {"account": account, "book": self.book.name},
                {"$inc": {"__v": 1}, "$set": {"updatedAt": now}},
                upsert=True,
                session=session,
            )

        logger.debug(
            "Accounts write-locked",
            extra={"book": self.book.name, "accounts": unique_accounts},
        )
        return self.book
