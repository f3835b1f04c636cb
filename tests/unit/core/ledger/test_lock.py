"""계정 쓰기 잠금 테스트"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.ledger.book import Book
from core.ledger.errors import SessionRequiredError


@pytest.fixture
def db() -> MagicMock:
    db = MagicMock()
    db.locks.update_one = AsyncMock()
    return db


class TestWriteLock:
    """writelock_accounts()"""

    @pytest.mark.asyncio
    async def test_session_required(self, db: MagicMock) -> None:
        book = Book("MyBook", db)

        with pytest.raises(SessionRequiredError):
            await book.writelock_accounts(["Assets:Cash"], session=None)

        db.locks.update_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_upsert_per_account(self, db: MagicMock) -> None:
        book = Book("MyBook", db)
        session = MagicMock()

        result = await book.writelock_accounts(["Assets:Cash", "Income"], session=session)

        assert result is book
        assert db.locks.update_one.await_count == 2

        filter_doc, update_doc = db.locks.update_one.call_args_list[0].args
        kwargs = db.locks.update_one.call_args_list[0].kwargs
        assert filter_doc == {"account": "Assets:Cash", "book": "MyBook"}
        assert update_doc["$inc"] == {"__v": 1}
        assert "updatedAt" in update_doc["$set"]
        assert kwargs["upsert"] is True
        assert kwargs["session"] is session

    @pytest.mark.asyncio
    async def test_duplicates_locked_once(self, db: MagicMock) -> None:
        book = Book("MyBook", db)

        await book.writelock_accounts(["B", "A", "B", "A"], session=MagicMock())

        accounts = [call.args[0]["account"] for call in db.locks.update_one.call_args_list]
        assert accounts == ["B", "A"]
