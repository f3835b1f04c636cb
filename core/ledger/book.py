"""
Book - 원장 단위 진입점

Book 하나가 하나의 독립된 장부. 여러 Book이 같은 컬렉션을 공유하며
모든 문서는 book 필드로 구분됨.

사용 예시:
```python
async with MongoAdapter(url, "ledger") as db:
    book = Book("MyBook", db)

    journal = await (
        book.entry("Received payment")
        .debit("Assets:Cash", 1000)
        .credit("Income", 1000, {"client_id": "12345"})
        .commit()
    )

    balance = await book.balance({"account": "Assets"})
    page = await book.ledger({"account": "Income", "per_page": 20, "page": 1})
    await book.void(journal.id, "wrong amount")
```
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from numbers import Real
from typing import TYPE_CHECKING, Any, Awaitable, Iterable, Mapping

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import DESCENDING

from core.constants import Defaults
from core.ledger.account_path import account_selector, expand_account_prefixes
from core.ledger.balance import BalanceSnapshotCache
from core.ledger.entry import Entry
from core.ledger.errors import BookConstructorError, JournalNotFoundError
from core.ledger.lock import WriteLockRegistry
from core.ledger.query import APPROVED_KEY, parse_balance_query, parse_filter_query
from core.ledger.schema import DEFAULT_SCHEMA, LedgerSchema
from core.ledger.types import Balance, Journal, LedgerPage
from core.ledger.void import void_journal

if TYPE_CHECKING:
    from adapters.db.mongo_adapter import MongoAdapter

logger = logging.getLogger(__name__)

def _is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_non_negative_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and value >= 0


@dataclass(frozen=True)
class BookOptions:
    """Book 옵션

    Attributes:
        precision: 합계 반올림 자릿수
        max_account_path: 계정 경로 최대 깊이
        balance_snapshot_sec: 잔액 스냅샷 갱신 주기 (0이면 스냅샷 비활성)
        expire_balance_snapshot_sec: 스냅샷 만료 시간 (None이면 갱신 주기의 2배)
        schema: 거래 행 고정 필드 집합

    Raises:
        BookConstructorError: 값이 유효하지 않음
    """

    precision: int = Defaults.PRECISION
    max_account_path: int = Defaults.MAX_ACCOUNT_PATH
    balance_snapshot_sec: float = Defaults.BALANCE_SNAPSHOT_SEC
    expire_balance_snapshot_sec: float | None = None
    schema: LedgerSchema = field(default=DEFAULT_SCHEMA)

    def __post_init__(self) -> None:
        if not _is_non_negative_int(self.precision):
            raise BookConstructorError("Invalid value for precision provided.")
        if not _is_non_negative_int(self.max_account_path):
            raise BookConstructorError("Invalid value for max_account_path provided.")
        if not _is_non_negative_number(self.balance_snapshot_sec):
            raise BookConstructorError("Invalid value for balance_snapshot_sec provided.")

        if self.expire_balance_snapshot_sec is None:
            object.__setattr__(
                self,
                "expire_balance_snapshot_sec",
                self.balance_snapshot_sec * Defaults.EXPIRE_SNAPSHOT_MULTIPLIER,
            )
        elif not _is_non_negative_number(self.expire_balance_snapshot_sec):
            raise BookConstructorError("Invalid value for expire_balance_snapshot_sec provided.")


class Book:
    """원장

    Args:
        name: Book 이름 (공백 불가)
        db: MongoAdapter (연결된 상태)
        options: BookOptions (None이면 기본값)

    Raises:
        BookConstructorError: 이름 또는 옵션이 유효하지 않음
    """

    def __init__(
        self,
        name: str,
        db: MongoAdapter,
        options: BookOptions | None = None,
    ):
        if not isinstance(name, str) or not name.strip():
            raise BookConstructorError("Invalid value for name provided.")

        self.name = name
        self.db = db
        self.options = options or BookOptions()

        self.snapshots = BalanceSnapshotCache(self)
        self.locks = WriteLockRegistry(self)

        # 백그라운드 작업 (GC 방지용 참조 보관)
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def precision(self) -> int:
        return self.options.precision

    @property
    def max_account_path(self) -> int:
        return self.options.max_account_path

    @property
    def balance_snapshot_sec(self) -> float:
        return self.options.balance_snapshot_sec

    @property
    def expire_balance_snapshot_sec(self) -> float:
        return self.options.expire_balance_snapshot_sec

    @property
    def schema(self) -> LedgerSchema:
        return self.options.schema

    # -------------------------------------------------------------------------
    # 백그라운드 작업
    # -------------------------------------------------------------------------

    def spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        """응답을 기다리지 않는 작업 실행 (스냅샷 갱신, 보상 삭제)

        작업 내부에서 예외를 로그로 처리해야 함.
        """
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def wait_background_tasks(self) -> None:
        """진행 중인 백그라운드 작업 완료 대기 (테스트/종료 처리용)"""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # -------------------------------------------------------------------------
    # 쓰기
    # -------------------------------------------------------------------------

    def entry(
        self,
        memo: str,
        date: datetime | None = None,
        original_journal: ObjectId | str | None = None,
    ) -> Entry:
        """새 분개 작성 시작"""
        return Entry(self, memo, date, original_journal)

    async def void(
        self,
        journal_id: ObjectId | str,
        reason: str | None = None,
        session: AsyncIOMotorClientSession | None = None,
    ) -> Journal:
        """분개 취소 (반대 분개 커밋). 자세한 순서는 void_journal 참고."""
        return await void_journal(self, journal_id, reason, session=session)

    async def approve(
        self,
        journal_id: ObjectId | str,
        session: AsyncIOMotorClientSession | None = None,
    ) -> Journal:
        """미승인 분개 승인

        분개와 소속 거래 행의 approved를 True로 변경.
        이미 승인된 분개는 그대로 반환.

        Raises:
            JournalNotFoundError: 분개 없음
        """
        if isinstance(journal_id, str):
            journal_id = ObjectId(journal_id)

        doc = await self.db.journals.find_one(
            {"_id": journal_id, "book": self.name},
            session=session,
        )
        if doc is None:
            raise JournalNotFoundError()

        journal = Journal.from_document(doc)
        if journal.approved:
            return journal

        journals = self.db.journals if session else self.db.durable("journals")
        transactions = self.db.transactions if session else self.db.durable("transactions")

        await transactions.update_many(
            {"_journal": journal.id},
            {"$set": {"approved": True}},
            session=session,
        )
        await journals.update_one(
            {"_id": journal.id, "book": self.name},
            {"$set": {"approved": True}},
            session=session,
        )

        journal.approved = True
        logger.info(
            "Journal approved",
            extra={"book": self.name, "journal_id": str(journal.id)},
        )
        return journal

    async def writelock_accounts(
        self,
        accounts: Iterable[str],
        session: AsyncIOMotorClientSession | None,
    ) -> Book:
        """계정 쓰기 잠금 (트랜잭션 마지막에 호출)"""
        return await self.locks.writelock_accounts(accounts, session)

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def balance(
        self,
        query: Mapping[str, Any] | None = None,
        session: AsyncIOMotorClientSession | None = None,
    ) -> Balance:
        """잔액 조회 (credit - debit)

        query 키:
            account: 계정 또는 계정 리스트 (상위 계정이면 하위 전체 포함)
            start_date / end_date: datetime 범위
            approved: 기본 True
            그 외: meta 조건

        스냅샷은 승인된 거래만, 날짜 범위 없이 조회할 때 사용.
        """
        query = dict(query or {})
        filter_query, meta = parse_balance_query(query, self.name, self.max_account_path)

        use_snapshot = filter_query.get(APPROVED_KEY) is True and "datetime" not in filter_query

        return await self.snapshots.get_balance(
            filter_query,
            account_selector(query.get("account")),
            meta,
            session=session,
            use_snapshot=use_snapshot,
        )

    async def ledger(
        self,
        query: Mapping[str, Any] | None = None,
        session: AsyncIOMotorClientSession | None = None,
    ) -> LedgerPage:
        """거래 행 목록 조회

        datetime, timestamp 내림차순.
        per_page(또는 perPage)가 있으면 page(기본 1, 1 미만은 1) 단위로 잘라서 반환하고
        total은 전체 일치 건수.
        """
        query = dict(query or {})
        per_page = query.pop("per_page", None)
        camel_per_page = query.pop("perPage", None)
        per_page = per_page or camel_per_page
        page = query.pop("page", None) or 1

        filter_query = parse_filter_query(query, self.name, self.max_account_path, self.schema)
        cursor = self.db.transactions.find(filter_query, session=session).sort(
            [("datetime", DESCENDING), ("timestamp", DESCENDING)]
        )

        if per_page:
            per_page = int(per_page)
            page = max(int(page), 1)
            total = await self.db.transactions.count_documents(filter_query, session=session)
            cursor = cursor.skip((page - 1) * per_page).limit(per_page)
            results = await cursor.to_list(None)
            return LedgerPage(results=results, total=total)

        results = await cursor.to_list(None)
        return LedgerPage(results=results, total=len(results))

    async def list_accounts(
        self,
        session: AsyncIOMotorClientSession | None = None,
    ) -> list[str]:
        """Book에 사용된 모든 계정 (상위 prefix 포함, 정렬)"""
        accounts = await self.db.transactions.distinct(
            "accounts",
            {"book": self.name},
            session=session,
        )
        return expand_account_prefixes(accounts)

    def __repr__(self) -> str:
        return f"Book(name={self.name!r})"
