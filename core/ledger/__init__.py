"""
복식부기 (Double-Entry Bookkeeping) 원장

MongoDB 위에서 동작하는 복식부기 원장.
분개 커밋, 잔액 조회(스냅샷 캐시), 거래 목록, 분개 취소, 계정 쓰기 잠금 제공.

사용 예시:
```python
from adapters.db import MongoAdapter
from core.ledger import Book, BookOptions

async with MongoAdapter(url, "ledger") as db:
    book = Book("MyBook", db, BookOptions(precision=2))

    # 분개 커밋
    journal = await (
        book.entry("Received payment")
        .debit("Assets:Cash", 1000)
        .credit("Income", 1000, {"client_id": "12345"})
        .commit()
    )

    # 잔액 조회
    balance = await book.balance({"account": "Assets:Cash"})

    # 트랜잭션 안에서 출금 + 잠금
    async with db.transaction() as session:
        await book.entry("Withdraw").debit("Income", 100).credit("Assets:Cash", 100).commit(session=session)
        await book.writelock_accounts(["Assets:Cash"], session=session)
```
"""

from core.ledger.balance import BalanceSnapshotCache, construct_key
from core.ledger.book import Book, BookOptions
from core.ledger.entry import Entry, commit_entries
from core.ledger.errors import (
    BookConstructorError,
    ConsistencyError,
    EntryStateError,
    InvalidAccountPathLengthError,
    JournalAlreadyVoidedError,
    JournalNotFoundError,
    JournalSaveError,
    LedgerError,
    SessionRequiredError,
    TransactionError,
)
from core.ledger.schema import DEFAULT_SCHEMA, LedgerSchema
from core.ledger.types import Balance, EntryState, Journal, JournalSide, LedgerPage

__all__ = [
    # 핵심 클래스
    "Book",
    "BookOptions",
    "Entry",
    "BalanceSnapshotCache",
    "LedgerSchema",
    "DEFAULT_SCHEMA",
    # 함수
    "commit_entries",
    "construct_key",
    # 결과 타입
    "Balance",
    "Journal",
    "LedgerPage",
    # Enum
    "EntryState",
    "JournalSide",
    # 예외
    "LedgerError",
    "BookConstructorError",
    "InvalidAccountPathLengthError",
    "TransactionError",
    "JournalNotFoundError",
    "JournalAlreadyVoidedError",
    "ConsistencyError",
    "JournalSaveError",
    "SessionRequiredError",
    "EntryStateError",
]
