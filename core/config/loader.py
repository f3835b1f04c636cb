"""
설정 로더

ledger.yaml 로드 및 MongoDB / Book 설정 생성
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from core.constants import Collections, Mongo, Paths
from core.ledger.book import BookOptions
from core.ledger.errors import BookConstructorError
from core.ledger.schema import LedgerSchema


@dataclass(frozen=True)
class MongoConfig:
    """MongoDB 연결 설정

    불변 데이터 구조로 설정 변경 방지
    """

    url: str = Mongo.URL
    database: str = Mongo.DATABASE
    transactions_collection: str = Collections.TRANSACTIONS
    journals_collection: str = Collections.JOURNALS
    balances_collection: str = Collections.BALANCES
    locks_collection: str = Collections.LOCKS


@dataclass(frozen=True)
class LedgerConfig:
    """원장 설정 (ledger.yaml에서 로드)"""

    mongo: MongoConfig
    books: dict[str, BookOptions] = field(default_factory=dict)


class ConfigLoadError(Exception):
    """설정 로드 실패 예외"""

    pass


_BOOK_OPTION_KEYS = {
    "precision",
    "max_account_path",
    "balance_snapshot_sec",
    "expire_balance_snapshot_sec",
}


def _parse_mongo(data: dict[str, Any]) -> MongoConfig:
    mongo_data = data.get("mongo") or {}
    if not isinstance(mongo_data, dict):
        raise ConfigLoadError("ledger.yaml의 'mongo' 섹션 형식이 잘못되었습니다")

    collections = mongo_data.get("collections") or {}
    return MongoConfig(
        url=mongo_data.get("url", Mongo.URL),
        database=mongo_data.get("database", Mongo.DATABASE),
        transactions_collection=collections.get("transactions", Collections.TRANSACTIONS),
        journals_collection=collections.get("journals", Collections.JOURNALS),
        balances_collection=collections.get("balances", Collections.BALANCES),
        locks_collection=collections.get("locks", Collections.LOCKS),
    )


def _parse_book(name: str, book_data: dict[str, Any] | None) -> BookOptions:
    book_data = book_data or {}

    unknown = set(book_data) - _BOOK_OPTION_KEYS - {"extra_fields", "extra_object_id_fields"}
    if unknown:
        raise ConfigLoadError(f"books.{name}에 알 수 없는 옵션이 있습니다: {sorted(unknown)}")

    schema = LedgerSchema(
        extra_fields=frozenset(book_data.get("extra_fields") or ()),
        extra_object_id_fields=frozenset(book_data.get("extra_object_id_fields") or ()),
    )
    options = {key: book_data[key] for key in _BOOK_OPTION_KEYS if key in book_data}

    try:
        return BookOptions(schema=schema, **options)
    except BookConstructorError as e:
        raise ConfigLoadError(f"books.{name} 설정 오류: {e}") from e


def load_config(path: Path | None = None) -> LedgerConfig:
    """ledger.yaml 파일 로드

    예시:
    ```yaml
    mongo:
      url: mongodb://localhost:27017/?replicaSet=rs0
      database: ledger
    books:
      MyBook:
        precision: 2
        balance_snapshot_sec: 3600
        extra_fields: [clientId]
    ```

    Args:
        path: ledger.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        LedgerConfig 인스턴스

    Raises:
        ConfigLoadError: 파일이 없거나 형식이 잘못된 경우
    """
    if path is None:
        path = Paths.CONFIG_FILE

    if not path.exists():
        raise ConfigLoadError(f"ledger.yaml 파일을 찾을 수 없습니다: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"ledger.yaml 파싱 실패: {e}") from e

    if data is None:
        raise ConfigLoadError("ledger.yaml이 비어 있습니다")
    if not isinstance(data, dict):
        raise ConfigLoadError("ledger.yaml 최상위는 매핑이어야 합니다")

    books_data = data.get("books") or {}
    if not isinstance(books_data, dict):
        raise ConfigLoadError("ledger.yaml의 'books' 섹션 형식이 잘못되었습니다")

    return LedgerConfig(
        mongo=_parse_mongo(data),
        books={name: _parse_book(name, book_data) for name, book_data in books_data.items()},
    )
