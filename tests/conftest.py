"""
pytest 공통 fixture 정의

- 임시 디렉토리 / 설정 파일
- mongomock-motor 인메모리 DB
- replica set 테스트용 URL (LEDGER_MONGO_URL)
"""

import os
import tempfile
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient, AsyncMongoMockDatabase

from adapters.db.mongo_adapter import MongoAdapter
from core.ledger.book import Book, BookOptions


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir: Path) -> Path:
    """테스트용 ledger.yaml 파일 생성"""
    config_content = """# 테스트용 ledger.yaml
mongo:
  url: mongodb://db.example:27017/?replicaSet=rs0
  database: ledger_test
  collections:
    transactions: tx
    journals: jr

books:
  MyBook:
    precision: 2
    balance_snapshot_sec: 3600
    extra_fields: [clientId]
  OtherBook: {}
"""
    config_path = temp_dir / "ledger.yaml"
    config_path.write_text(config_content, encoding="utf-8")
    return config_path


@pytest.fixture
def memory_db() -> AsyncMongoMockDatabase:
    """mongomock-motor 인메모리 DB (세션/트랜잭션 미지원)"""
    return AsyncMongoMockClient()["ledger_test"]


@pytest.fixture
def adapter(memory_db: AsyncMongoMockDatabase) -> MongoAdapter:
    """인메모리 DB에 바인딩된 MongoAdapter"""
    return MongoAdapter(database=memory_db)


@pytest_asyncio.fixture
async def book(adapter: MongoAdapter) -> Book:
    """기본 옵션 Book (종료 시 백그라운드 작업 대기)"""
    book = Book("MyBook", adapter)
    yield book
    await book.wait_background_tasks()


@pytest.fixture
def make_book(adapter: MongoAdapter):
    """옵션을 지정해 Book 생성"""

    def factory(name: str = "MyBook", **options: Any) -> Book:
        return Book(name, adapter, BookOptions(**options))

    return factory


@pytest.fixture
def replica_set_url() -> str:
    """replica set 연결 문자열 (없으면 테스트 skip)"""
    url = os.environ.get("LEDGER_MONGO_URL")
    if not url:
        pytest.skip("LEDGER_MONGO_URL not set (replica set required)")
    return url
