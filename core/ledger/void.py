"""
분개 취소(void)

취소는 삭제가 아니라 반대 방향 분개를 새로 커밋하는 방식.
원 분개와 거래 행에는 voided/void_reason 플래그만 기록.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession

from core.ledger.errors import (
    ConsistencyError,
    JournalAlreadyVoidedError,
    JournalNotFoundError,
)
from core.ledger.schema import LedgerSchema, is_reserved_key
from core.ledger.types import Journal, JournalSide, VoidTag

if TYPE_CHECKING:
    from core.ledger.book import Book

logger = logging.getLogger(__name__)


def handle_void_memo(reason: str | None, memo: str | None) -> str:
    """취소 사유 결정

    명시적 reason이 있으면 그대로 사용.
    없으면 원 memo의 태그를 순환:
    [VOID] → [UNVOID] → [REVOID] → [UNVOID] ...
    태그가 없으면 "[VOID] memo".
    """
    if reason:
        return reason

    memo = memo or ""
    if memo.startswith(VoidTag.VOID.value):
        return memo.replace(VoidTag.VOID.value, VoidTag.UNVOID.value, 1)
    if memo.startswith(VoidTag.UNVOID.value):
        return memo.replace(VoidTag.UNVOID.value, VoidTag.REVOID.value, 1)
    if memo.startswith(VoidTag.REVOID.value):
        return memo.replace(VoidTag.REVOID.value, VoidTag.UNVOID.value, 1)
    return f"{VoidTag.VOID.value} {memo}"


@dataclass
class ReversalLine:
    """반대 분개의 한 행"""

    side: JournalSide
    account_path: list[str]
    amount: float
    meta: dict[str, Any] = field(default_factory=dict)


def reverse_transactions(
    rows: Iterable[Mapping[str, Any]],
    schema: LedgerSchema,
) -> list[ReversalLine]:
    """거래 행 목록을 반대 방향 행 목록으로 변환 (DB 접근 없음)

    - credit 행 → 같은 금액의 debit, debit 행 → credit
    - 계정 경로 유지
    - meta: 원 행의 meta + 스키마에 없는 최상위 키 (스키마 고정 필드와 예약어 제외)
    """
    lines = []
    for row in rows:
        meta: dict[str, Any] = {}
        for key, value in (row.get("meta") or {}).items():
            if not is_reserved_key(key):
                meta[key] = value
        for key, value in row.items():
            if schema.is_known_field(key) or is_reserved_key(key):
                continue
            meta[key] = value

        credit = row.get("credit") or 0
        debit = row.get("debit") or 0
        if credit:
            lines.append(ReversalLine(JournalSide.DEBIT, list(row["account_path"]), credit, meta))
        if debit:
            lines.append(ReversalLine(JournalSide.CREDIT, list(row["account_path"]), debit, meta))
    return lines


async def void_journal(
    book: Book,
    journal_id: ObjectId | str,
    reason: str | None = None,
    session: AsyncIOMotorClientSession | None = None,
) -> Journal:
    """분개 취소

    1. 분개 조회 및 상태 검증
    2. 거래 행 조회 및 개수 검증
    3. 분개 → 거래 행 순으로 voided 플래그 기록
    4. 반대 분개 커밋 (memo = 취소 사유, original_journal = 원 분개)

    session이 없으면 3과 4 사이는 원자적이지 않음.

    Args:
        book: 대상 Book
        journal_id: 취소할 분개 ID
        reason: 취소 사유 (없으면 memo 태그 순환)
        session: 외부 트랜잭션 세션

    Returns:
        새로 커밋된 반대 분개

    Raises:
        JournalNotFoundError: 분개 없음 (다른 Book 포함)
        JournalAlreadyVoidedError: 이미 취소된 분개
        ConsistencyError: 거래 행 수 불일치 또는 동시 취소
    """
    if isinstance(journal_id, str):
        journal_id = ObjectId(journal_id)

    db = book.db
    doc = await db.journals.find_one({"_id": journal_id, "book": book.name}, session=session)
    if doc is None:
        raise JournalNotFoundError()

    journal = Journal.from_document(doc)
    if journal.voided:
        raise JournalAlreadyVoidedError()

    void_reason = handle_void_memo(reason, journal.memo)

    rows = await db.transactions.find({"_journal": journal.id}, session=session).to_list(None)
    if len(rows) != len(journal.transactions):
        raise ConsistencyError()

    reversal = reverse_transactions(rows, book.schema)

    journals = db.journals if session else db.durable("journals")
    transactions = db.transactions if session else db.durable("transactions")
    void_fields = {"voided": True, "void_reason": void_reason}

    result = await journals.update_one(
        {"_id": journal.id, "book": book.name, "voided": False},
        {"$set": void_fields},
        session=session,
    )
    if result.matched_count == 0 or result.modified_count == 0:
        raise ConsistencyError()

    result = await transactions.update_many(
        {"_journal": journal.id},
        {"$set": void_fields},
        session=session,
    )
    if result.matched_count != len(rows):
        raise ConsistencyError()

    entry = book.entry(void_reason, original_journal=journal.id)
    entry.set_approved(journal.approved)
    for line in reversal:
        if line.side == JournalSide.DEBIT:
            entry.debit(line.account_path, line.amount, line.meta)
        else:
            entry.credit(line.account_path, line.amount, line.meta)

    reversed_journal = await entry.commit(session=session)
    logger.info(
        "Journal voided",
        extra={
            "book": book.name,
            "journal_id": str(journal.id),
            "reversal_id": str(reversed_journal.id),
            "reason": void_reason,
        },
    )
    return reversed_journal
