"""
MongoDB 어댑터

motor(AsyncIOMotorClient) 연결 관리 및 Ledger 컬렉션 접근.
다중 문서 트랜잭션은 replica set 또는 sharded cluster에서만 동작.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import WriteConcern

from core.constants import Collections, Defaults, Mongo
from core.ledger.schema import (
    balance_indexes,
    journal_indexes,
    lock_indexes,
    transaction_indexes,
)

logger = logging.getLogger(__name__)

# 되돌릴 수 없는 쓰기용: 최소 1개 노드의 디스크 저널 기록 확인
DURABLE_WRITE_CONCERN = WriteConcern(w=1, j=True)


def create_client(
    url: str = Mongo.URL,
    server_selection_timeout_ms: int = Mongo.SERVER_SELECTION_TIMEOUT_MS,
) -> AsyncIOMotorClient:
    """MongoDB 클라이언트 생성

    Args:
        url: MongoDB 연결 문자열
        server_selection_timeout_ms: 서버 선택 타임아웃

    Returns:
        AsyncIOMotorClient
    """
    client = AsyncIOMotorClient(
        url,
        serverSelectionTimeoutMS=server_selection_timeout_ms,
    )
    logger.info("MongoDB 클라이언트 생성", extra={"url": url})
    return client


class MongoAdapter:
    """MongoDB 어댑터

    Ledger가 사용하는 4개 컬렉션(transactions, journals, balances, locks)과
    트랜잭션 컨텍스트 매니저 제공.

    Args:
        url: MongoDB 연결 문자열 (database를 직접 넘기면 무시)
        database_name: 데이터베이스 이름
        database: 이미 생성된 motor 호환 database 객체 (테스트용 주입)
        transactions_collection ~ locks_collection: 컬렉션 이름

    사용 예시:
    ```python
    async with MongoAdapter(url, "ledger") as db:
        book = Book("MyBook", db)

        async with db.transaction() as session:
            await book.entry("memo").debit("A", 1).credit("B", 1).commit(session=session)
            await book.writelock_accounts(["A"], session=session)
    ```
    """

    def __init__(
        self,
        url: str = Mongo.URL,
        database_name: str = Mongo.DATABASE,
        *,
        database: AsyncIOMotorDatabase | None = None,
        transactions_collection: str = Collections.TRANSACTIONS,
        journals_collection: str = Collections.JOURNALS,
        balances_collection: str = Collections.BALANCES,
        locks_collection: str = Collections.LOCKS,
    ):
        self.url = url
        self.database_name = database_name
        self.collection_names = {
            "transactions": transactions_collection,
            "journals": journals_collection,
            "balances": balances_collection,
            "locks": locks_collection,
        }
        self._client: AsyncIOMotorClient | None = None
        self._db: AsyncIOMotorDatabase | None = None

        if database is not None:
            self._bind(database)

    def _bind(self, database: AsyncIOMotorDatabase) -> None:
        self._db = database
        self.transactions: AsyncIOMotorCollection = database[self.collection_names["transactions"]]
        self.journals: AsyncIOMotorCollection = database[self.collection_names["journals"]]
        self.balances: AsyncIOMotorCollection = database[self.collection_names["balances"]]
        self.locks: AsyncIOMotorCollection = database[self.collection_names["locks"]]

    @property
    def is_connected(self) -> bool:
        """연결 상태 확인"""
        return self._db is not None

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self._db is None:
            raise RuntimeError("Not connected to database")
        return self._db

    async def connect(self) -> None:
        """연결 생성"""
        if self._db is not None:
            return

        self._client = create_client(self.url)
        self._bind(self._client[self.database_name])
        logger.info("MongoDB 연결", extra={"database": self.database_name})

    async def close(self) -> None:
        """연결 종료"""
        if self._client is not None:
            self._client.close()
            self._client = None
            self._db = None
            logger.info("MongoDB 연결 종료")

    def durable(self, name: str) -> AsyncIOMotorCollection:
        """쓰기 확인 수준을 높인(w=1, j=True) 컬렉션 핸들

        Args:
            name: "transactions", "journals", "balances", "locks" 중 하나
        """
        return self.database.get_collection(
            self.collection_names[name],
            write_concern=DURABLE_WRITE_CONCERN,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncIOMotorClientSession]:
        """트랜잭션 컨텍스트 매니저

        성공 시 자동 커밋, 예외 시 자동 중단(abort).
        write conflict는 커밋 시점에 예외로 전파됨 (재시도는 호출자 책임).

        사용 예시:
        ```python
        async with adapter.transaction() as session:
            await entry.commit(session=session)
        ```
        """
        client = self.database.client
        async with await client.start_session() as session:
            session.start_transaction()
            try:
                yield session
            except Exception:
                if session.in_transaction:
                    await session.abort_transaction()
                raise
            await session.commit_transaction()

    async def init_indexes(self, lock_expire_sec: int = Defaults.LOCK_EXPIRE_SEC) -> None:
        """Ledger 컬렉션 인덱스 생성

        TTL 인덱스(balances.expireAt, locks.updatedAt) 포함.
        이미 존재하는 인덱스는 건너뜀.
        """
        await self.transactions.create_indexes(transaction_indexes())
        await self.journals.create_indexes(journal_indexes())
        await self.balances.create_indexes(balance_indexes())
        await self.locks.create_indexes(lock_indexes(lock_expire_sec))
        logger.info("Ledger 인덱스 초기화 완료")

    # -------------------------------------------------------------------------
    # 컨텍스트 매니저
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "MongoAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
