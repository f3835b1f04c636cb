"""
분개 생성 및 커밋

Book.entry()로 만든 Entry에 credit/debit 행을 쌓고 commit()으로 저장.
commit은 합계(credit - debit)가 0일 때만 거래 행 → 분개 순서로 저장.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession

from core.ledger.account_path import ACCOUNT_SEPARATOR, split_account_path
from core.ledger.errors import EntryStateError, JournalSaveError, TransactionError
from core.ledger.schema import is_reserved_key
from core.ledger.types import EntryState, Journal, JournalSide

if TYPE_CHECKING:
    from adapters.db.mongo_adapter import MongoAdapter
    from core.ledger.book import Book

logger = logging.getLogger(__name__)


def parse_amount(amount: float | int | str) -> float:
    """금액 입력 정규화 (숫자 문자열은 float로 파싱)"""
    return float(amount)


def round_total(value: float, precision: int) -> float:
    """precision 자릿수 반올림 (-0.0은 0.0으로)"""
    rounded = round(value, precision)
    return rounded + 0.0


class Entry:
    """분개 작성기

    하나의 분개(journal)와 그에 속한 거래 행(transaction)들을 메모리에 보관.
    credit/debit은 체이닝 가능.

    사용 예시:
    ```python
    journal = await (
        book.entry("Received payment")
        .debit("Assets:Cash", 1000)
        .credit("Income", 1000, {"client_id": "12345"})
        .commit()
    )
    ```
    """

    def __init__(
        self,
        book: Book,
        memo: str,
        date: datetime | None = None,
        original_journal: ObjectId | str | None = None,
    ):
        self.book = book
        self.state = EntryState.OPEN

        if isinstance(original_journal, str):
            original_journal = ObjectId(original_journal)

        self.journal = Journal(
            id=ObjectId(),
            book=book.name,
            memo=memo,
            datetime=date or datetime.now(timezone.utc),
            original_journal=original_journal,
        )
        self.transactions: list[dict[str, Any]] = []

    def set_approved(self, value: bool) -> Entry:
        """승인 여부 설정 (미승인 분개는 잔액/원장 조회에서 제외)"""
        self.journal.approved = value
        return self

    def credit(
        self,
        account_path: str | Sequence[str],
        amount: float | int | str,
        extra: Mapping[str, Any] | None = None,
    ) -> Entry:
        """대변 행 추가"""
        return self._transact(JournalSide.CREDIT, account_path, amount, extra)

    def debit(
        self,
        account_path: str | Sequence[str],
        amount: float | int | str,
        extra: Mapping[str, Any] | None = None,
    ) -> Entry:
        """차변 행 추가"""
        return self._transact(JournalSide.DEBIT, account_path, amount, extra)

    def _transact(
        self,
        side: JournalSide,
        account_path: str | Sequence[str],
        amount: float | int | str,
        extra: Mapping[str, Any] | None,
    ) -> Entry:
        """거래 행 생성

        extra의 키 중 스키마 고정 필드는 행에 직접 기록,
        나머지는 meta에 기록.
        """
        if self.state != EntryState.OPEN:
            raise EntryStateError(f"Entry is {self.state.value}, cannot add transactions")

        segments = split_account_path(account_path, self.book.max_account_path)
        value = parse_amount(amount)

        transaction: dict[str, Any] = {
            "_journal": self.journal.id,
            "_original_journal": self.journal.original_journal,
            "account_path": segments,
            "accounts": ACCOUNT_SEPARATOR.join(segments),
            "approved": False,
            "book": self.book.name,
            "credit": value if side == JournalSide.CREDIT else 0.0,
            "debit": value if side == JournalSide.DEBIT else 0.0,
            "datetime": self.journal.datetime,
            "memo": self.journal.memo,
            "meta": {},
            "timestamp": datetime.now(timezone.utc),
            "void_reason": None,
            "voided": False,
        }

        if extra:
            for key, val in extra.items():
                if is_reserved_key(key):
                    continue
                if self.book.schema.is_known_field(key):
                    transaction[key] = val
                else:
                    transaction["meta"][key] = val

        self.transactions.append(transaction)
        return self

    def total(self) -> float:
        """credit - debit 합계 (precision 반올림)"""
        total = sum(tx["credit"] - tx["debit"] for tx in self.transactions)
        return round_total(total, self.book.precision)

    async def commit(self, session: AsyncIOMotorClientSession | None = None) -> Journal:
        """분개 저장

        1. 각 행에 분개의 approved 값 복사
        2. 합계 검증 (0이 아니면 TransactionError, 저장 없음)
        3. 거래 행 일괄 저장 → 분개 저장

        session이 있으면 모든 쓰기가 해당 트랜잭션에 묶임 (실패 시 호출자가 abort).
        session이 없으면 분개 저장 실패 시 이미 저장된 거래 행 삭제를 백그라운드로 시도.
        삭제와 저장 실패 사이는 원자적이지 않음.

        Args:
            session: 외부 트랜잭션 세션

        Returns:
            저장된 Journal

        Raises:
            TransactionError: 합계가 0이 아님 (total 속성에 합계)
            JournalSaveError: 저장 실패
        """
        if self.state != EntryState.OPEN:
            raise EntryStateError(f"Entry is {self.state.value}, cannot commit")

        for transaction in self.transactions:
            transaction["approved"] = self.journal.approved

        total = self.total()
        if total != 0:
            self.state = EntryState.REJECTED
            raise TransactionError("INVALID_JOURNAL: can't commit non zero total", total)

        self.state = EntryState.COMMITTING
        db = self.book.db

        try:
            if self.transactions:
                result = await db.transactions.insert_many(
                    self.transactions,
                    ordered=True,
                    session=session,
                )
                self.journal.transactions = list(result.inserted_ids)

            await db.journals.insert_one(self.journal.to_document(), session=session)
        except Exception as e:
            self.state = EntryState.FAILED
            if session is None:
                self.book.spawn(self._cleanup_transactions())
            raise JournalSaveError(f"Failure to save journal: {e}") from e

        self.state = EntryState.COMMITTED
        logger.debug(
            "Journal committed",
            extra={
                "book": self.book.name,
                "journal_id": str(self.journal.id),
                "transactions": len(self.journal.transactions),
            },
        )
        return self.journal

    async def _cleanup_transactions(self) -> None:
        """분개 저장 실패 후 보상 삭제 (best-effort)"""
        try:
            await self.book.db.transactions.delete_many({"_journal": self.journal.id})
        except Exception:
            logger.exception(
                f"Can't delete txs for journal {self.journal.id}. Ledger consistency got harmed.",
                extra={"book": self.book.name, "journal_id": str(self.journal.id)},
            )


async def commit_entries(
    adapter: MongoAdapter,
    *entries: Entry,
) -> list[Journal]:
    """여러 Entry를 하나의 트랜잭션으로 커밋

    Args:
        adapter: MongoAdapter (transaction() 제공)
        entries: 커밋할 Entry들

    Returns:
        저장된 Journal 목록 (입력 순서)

    Raises:
        TransactionError: 하나라도 실패 (전체 abort, total = Entry 수)
    """
    try:
        async with adapter.transaction() as session:
            journals = []
            for entry in entries:
                journals.append(await entry.commit(session=session))
            return journals
    except Exception as e:
        raise TransactionError(
            f"Failure to commit entries: {e}",
            len(entries),
            code=500,
        ) from e
