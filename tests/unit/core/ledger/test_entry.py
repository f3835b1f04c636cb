"""Entry 커밋 프로토콜 테스트

DB는 AsyncMock으로 대체해 저장 순서와 실패 처리만 검증.
"""

import inspect
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

from core.ledger.book import Book, BookOptions
from core.ledger.entry import Entry, commit_entries, parse_amount, round_total
from core.ledger.errors import (
    EntryStateError,
    InvalidAccountPathLengthError,
    JournalSaveError,
    TransactionError,
)
from core.ledger.schema import LedgerSchema
from core.ledger.types import EntryState


def make_db() -> MagicMock:
    """insert_many / insert_one / delete_many가 성공하는 mock 어댑터"""
    db = MagicMock()
    db.transactions.insert_many = AsyncMock(
        side_effect=lambda docs, **kwargs: MagicMock(inserted_ids=[ObjectId() for _ in docs])
    )
    db.transactions.delete_many = AsyncMock()
    db.journals.insert_one = AsyncMock()
    return db


@pytest.fixture
def db() -> MagicMock:
    return make_db()


@pytest.fixture
def book(db: MagicMock) -> Book:
    return Book("MyBook", db)


class TestHelpers:
    """금액 / 반올림"""

    def test_parse_amount(self) -> None:
        assert parse_amount(10) == 10.0
        assert parse_amount("12.5") == 12.5

    def test_parse_amount_invalid(self) -> None:
        with pytest.raises(ValueError):
            parse_amount("abc")

    def test_round_total_negative_zero(self) -> None:
        result = round_total(-0.000000001, 8)

        assert result == 0.0
        assert str(result) == "0.0"


class TestEntryBuild:
    """행 생성"""

    def test_chaining(self, book: Book) -> None:
        entry = book.entry("memo").debit("Assets:Cash", 10).credit("Income", 10)

        assert isinstance(entry, Entry)
        assert len(entry.transactions) == 2
        assert entry.total() == 0

    def test_row_fields(self, book: Book) -> None:
        entry = book.entry("Received payment").credit("Assets:Receivable:Client", "500")
        row = entry.transactions[0]

        assert row["credit"] == 500.0
        assert row["debit"] == 0.0
        assert row["account_path"] == ["Assets", "Receivable", "Client"]
        assert row["accounts"] == "Assets:Receivable:Client"
        assert row["book"] == "MyBook"
        assert row["memo"] == "Received payment"
        assert row["_journal"] == entry.journal.id
        assert row["voided"] is False

    def test_default_datetime_is_now(self, book: Book) -> None:
        before = datetime.now(timezone.utc)
        entry = book.entry("memo")

        assert entry.journal.datetime >= before

    def test_original_journal_string_coerced(self, book: Book) -> None:
        original = ObjectId()

        entry = book.entry("memo", original_journal=str(original))

        assert entry.journal.original_journal == original

    def test_too_deep_raises_immediately(self, book: Book) -> None:
        entry = book.entry("memo")

        with pytest.raises(InvalidAccountPathLengthError):
            entry.debit("A:B:C:D", 1)

        assert entry.transactions == []

    def test_custom_depth(self, db: MagicMock) -> None:
        book = Book("MyBook", db, BookOptions(max_account_path=5))

        entry = book.entry("memo").debit("A:B:C:D:E", 1)

        assert entry.transactions[0]["account_path"] == ["A", "B", "C", "D", "E"]

    def test_extra_routing(self, book: Book) -> None:
        """고정 필드는 행에, 나머지는 meta에, 예약어는 무시"""
        entry = book.entry("memo").debit(
            "Assets",
            1,
            {"clientId": "12345", "memo": "line memo", "__proto__": {"x": 1}},
        )
        row = entry.transactions[0]

        assert row["meta"] == {"clientId": "12345"}
        assert row["memo"] == "line memo"
        assert "__proto__" not in row
        assert "__proto__" not in row["meta"]

    def test_extra_schema_field(self, db: MagicMock) -> None:
        schema = LedgerSchema(extra_fields=frozenset({"clientId"}))
        book = Book("MyBook", db, BookOptions(schema=schema))

        row = book.entry("memo").debit("Assets", 1, {"clientId": "12345"}).transactions[0]

        assert row["clientId"] == "12345"
        assert row["meta"] == {}


class TestEntryCommit:
    """commit()"""

    @pytest.mark.asyncio
    async def test_non_zero_total_rejected(self, book: Book, db: MagicMock) -> None:
        entry = book.entry("memo").debit("Assets", 99.8).credit("Income", 99.9)

        with pytest.raises(TransactionError) as exc_info:
            await entry.commit()

        assert exc_info.value.total == pytest.approx(0.1)
        assert "INVALID_JOURNAL" in str(exc_info.value)
        assert entry.state == EntryState.REJECTED
        db.transactions.insert_many.assert_not_awaited()
        db.journals.insert_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_float_noise_is_rounded(self, book: Book, db: MagicMock) -> None:
        """0.1 + 0.2 == 0.3 (precision 반올림)"""
        entry = (
            book.entry("memo")
            .debit("Assets", 0.1)
            .debit("Assets", 0.2)
            .credit("Income", 0.3)
        )

        journal = await entry.commit()

        assert entry.state == EntryState.COMMITTED
        assert len(journal.transactions) == 3

    @pytest.mark.asyncio
    async def test_rows_then_journal(self, book: Book, db: MagicMock) -> None:
        entry = book.entry("memo").debit("Assets", 10).credit("Income", 10)

        journal = await entry.commit()

        db.transactions.insert_many.assert_awaited_once()
        _, kwargs = db.transactions.insert_many.call_args
        assert kwargs["ordered"] is True
        assert kwargs["session"] is None

        journal_doc = db.journals.insert_one.call_args.args[0]
        assert journal_doc["_id"] == journal.id
        assert journal_doc["_transactions"] == journal.transactions
        assert "_original_journal" not in journal_doc

    @pytest.mark.asyncio
    async def test_approval_copied_to_rows(self, book: Book) -> None:
        entry = book.entry("memo").debit("Assets", 1).credit("Income", 1).set_approved(False)

        journal = await entry.commit()

        assert journal.approved is False
        assert all(row["approved"] is False for row in entry.transactions)

    @pytest.mark.asyncio
    async def test_session_forwarded(self, book: Book, db: MagicMock) -> None:
        session = MagicMock()

        await book.entry("memo").debit("Assets", 1).credit("Income", 1).commit(session=session)

        assert db.transactions.insert_many.call_args.kwargs["session"] is session
        assert db.journals.insert_one.call_args.kwargs["session"] is session

    @pytest.mark.asyncio
    async def test_commit_twice(self, book: Book) -> None:
        entry = book.entry("memo").debit("Assets", 1).credit("Income", 1)
        await entry.commit()

        with pytest.raises(EntryStateError):
            await entry.commit()
        with pytest.raises(EntryStateError):
            entry.debit("Assets", 1)


class TestEntryCompensation:
    """분개 저장 실패 시 보상 삭제"""

    @pytest.mark.asyncio
    async def test_journal_failure_deletes_rows(self, book: Book, db: MagicMock) -> None:
        cause = RuntimeError("disk full")
        db.journals.insert_one = AsyncMock(side_effect=cause)
        entry = book.entry("memo").debit("Assets", 1).credit("Income", 1)

        with pytest.raises(JournalSaveError) as exc_info:
            await entry.commit()
        await book.wait_background_tasks()

        assert "Failure to save journal" in str(exc_info.value)
        assert exc_info.value.__cause__ is cause
        assert exc_info.value.code == 500
        assert entry.state == EntryState.FAILED
        db.transactions.delete_many.assert_awaited_once_with({"_journal": entry.journal.id})

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_logged(
        self, book: Book, db: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        db.journals.insert_one = AsyncMock(side_effect=RuntimeError("disk full"))
        db.transactions.delete_many = AsyncMock(side_effect=RuntimeError("still down"))
        entry = book.entry("memo").debit("Assets", 1).credit("Income", 1)

        with caplog.at_level(logging.ERROR, logger="core.ledger.entry"):
            with pytest.raises(JournalSaveError):
                await entry.commit()
            await book.wait_background_tasks()

        assert any("consistency" in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_no_cleanup_with_session(self, book: Book, db: MagicMock) -> None:
        """세션이 있으면 abort가 되돌리므로 보상 삭제 없음"""
        db.journals.insert_one = AsyncMock(side_effect=RuntimeError("write conflict"))
        entry = book.entry("memo").debit("Assets", 1).credit("Income", 1)

        with pytest.raises(JournalSaveError):
            await entry.commit(session=MagicMock())
        await book.wait_background_tasks()

        db.transactions.delete_many.assert_not_awaited()


class TestCommitEntries:
    """여러 Entry 원자적 커밋"""

    @staticmethod
    def make_adapter(db: MagicMock, session: object) -> MagicMock:
        @asynccontextmanager
        async def transaction():
            yield session

        db.transaction = transaction
        return db

    def test_adapter_annotation(self) -> None:
        signature = inspect.signature(commit_entries)

        assert signature.parameters["adapter"].annotation == "MongoAdapter"

    @pytest.mark.asyncio
    async def test_all_committed_in_one_session(self, book: Book, db: MagicMock) -> None:
        session = MagicMock()
        adapter = self.make_adapter(db, session)
        first = book.entry("one").debit("Assets", 1).credit("Income", 1)
        second = book.entry("two").debit("Assets", 2).credit("Income", 2)

        journals = await commit_entries(adapter, first, second)

        assert [j.memo for j in journals] == ["one", "two"]
        for call in db.journals.insert_one.call_args_list:
            assert call.kwargs["session"] is session

    @pytest.mark.asyncio
    async def test_failure_wrapped(self, book: Book, db: MagicMock) -> None:
        adapter = self.make_adapter(db, MagicMock())
        good = book.entry("good").debit("Assets", 1).credit("Income", 1)
        bad = book.entry("bad").debit("Assets", 1).credit("Income", 2)

        with pytest.raises(TransactionError) as exc_info:
            await commit_entries(adapter, good, bad)

        assert exc_info.value.total == 2
        assert exc_info.value.code == 500
        assert "Failure to commit entries" in str(exc_info.value)
