"""
복식부기 타입 정의

Ledger 시스템에서 사용하는 Enum 및 조회 결과 데이터 구조
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from bson import ObjectId


class JournalSide(str, Enum):
    """분개 방향 (차변/대변)"""

    DEBIT = "DEBIT"  # 차변
    CREDIT = "CREDIT"  # 대변


class EntryState(str, Enum):
    """Entry 커밋 상태

    OPEN → COMMITTING → COMMITTED | REJECTED | FAILED
    """

    OPEN = "OPEN"
    COMMITTING = "COMMITTING"
    COMMITTED = "COMMITTED"
    REJECTED = "REJECTED"  # 불균형 분개 (아무것도 저장되지 않음)
    FAILED = "FAILED"  # 저장 실패


class VoidTag(str, Enum):
    """void 메모 접두사 (void → unvoid → revoid 순환)"""

    VOID = "[VOID]"
    UNVOID = "[UNVOID]"
    REVOID = "[REVOID]"


@dataclass(frozen=True)
class Balance:
    """잔액 조회 결과

    balance: credit - debit 합계 (precision 반올림)
    notes: 집계된 거래 행 수
    """

    balance: float = 0.0
    notes: int = 0


@dataclass
class LedgerPage:
    """ledger() 조회 결과"""

    results: list[dict[str, Any]]
    total: int


@dataclass
class Journal:
    """저장된 분개 (journals 컬렉션 문서)"""

    id: ObjectId
    book: str
    memo: str
    datetime: datetime
    transactions: list[ObjectId] = field(default_factory=list)
    voided: bool = False
    void_reason: str | None = None
    approved: bool = True
    original_journal: ObjectId | None = None

    def to_document(self) -> dict[str, Any]:
        """MongoDB 저장용 문서 변환"""
        doc: dict[str, Any] = {
            "_id": self.id,
            "datetime": self.datetime,
            "memo": self.memo,
            "_transactions": list(self.transactions),
            "book": self.book,
            "voided": self.voided,
            "void_reason": self.void_reason,
            "approved": self.approved,
        }
        if self.original_journal is not None:
            doc["_original_journal"] = self.original_journal
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Journal:
        """MongoDB 문서에서 생성"""
        return cls(
            id=doc["_id"],
            book=doc["book"],
            memo=doc.get("memo", ""),
            datetime=doc["datetime"],
            transactions=list(doc.get("_transactions", [])),
            voided=bool(doc.get("voided", False)),
            void_reason=doc.get("void_reason"),
            approved=bool(doc.get("approved", True)),
            original_journal=doc.get("_original_journal"),
        )
