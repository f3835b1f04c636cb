"""
Ledger 스키마 정의

거래 행(transaction)의 고정 필드 집합과 컬렉션별 인덱스 정의.
필드 집합은 설정 시점에 한 번 만들어 Book에 주입하며,
런타임에 스키마를 조사하지 않음.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pymongo import ASCENDING, DESCENDING, IndexModel

from core.constants import Defaults

# 거래 행 고정 필드 (이 외의 키는 meta로 이동)
TRANSACTION_FIELDS: frozenset[str] = frozenset({
    "_id",
    "credit",
    "debit",
    "meta",
    "datetime",
    "account_path",
    "accounts",
    "book",
    "memo",
    "_journal",
    "timestamp",
    "voided",
    "void_reason",
    "_original_journal",
    "approved",
})

# ObjectId 타입 필드 (문자열로 들어오면 ObjectId로 변환)
TRANSACTION_OBJECT_ID_FIELDS: frozenset[str] = frozenset({
    "_id",
    "_journal",
    "_original_journal",
})

# prototype-pollution 계열 예약어 (쿼리/메타 키로 사용 불가)
RESERVED_KEYS: frozenset[str] = frozenset({
    "__proto__",
    "__defineGetter__",
    "__lookupGetter__",
    "__defineSetter__",
    "__lookupSetter__",
    "constructor",
    "hasOwnProperty",
    "isPrototypeOf",
    "propertyIsEnumerable",
    "toString",
    "toLocaleString",
    "valueOf",
})


@dataclass(frozen=True)
class LedgerSchema:
    """거래 행 필드 집합

    애플리케이션이 거래 행에 고정 필드를 추가하고 싶으면
    extra_fields / extra_object_id_fields로 확장한 인스턴스를 Book에 전달.
    """

    extra_fields: frozenset[str] = field(default_factory=frozenset)
    extra_object_id_fields: frozenset[str] = field(default_factory=frozenset)

    @property
    def fields(self) -> frozenset[str]:
        return TRANSACTION_FIELDS | self.extra_fields | self.extra_object_id_fields

    @property
    def object_id_fields(self) -> frozenset[str]:
        return TRANSACTION_OBJECT_ID_FIELDS | self.extra_object_id_fields

    def is_known_field(self, key: str) -> bool:
        return key in self.fields

    def is_object_id_field(self, key: str) -> bool:
        return key in self.object_id_fields


DEFAULT_SCHEMA = LedgerSchema()


def is_reserved_key(key: str) -> bool:
    """예약어 여부 (해당 키는 조용히 무시)"""
    return key in RESERVED_KEYS


def transaction_indexes() -> list[IndexModel]:
    """transactions 컬렉션 인덱스

    계정 prefix 매칭, 날짜 범위, 분개 역참조 쿼리 지원.
    """
    return [
        IndexModel([("_journal", ASCENDING)]),
        IndexModel([
            ("accounts", ASCENDING),
            ("book", ASCENDING),
            ("approved", ASCENDING),
            ("datetime", DESCENDING),
            ("timestamp", DESCENDING),
        ]),
        IndexModel([("datetime", DESCENDING), ("timestamp", DESCENDING)]),
        IndexModel([
            ("account_path.0", ASCENDING),
            ("book", ASCENDING),
            ("approved", ASCENDING),
        ]),
        IndexModel([
            ("account_path.0", ASCENDING),
            ("account_path.1", ASCENDING),
            ("book", ASCENDING),
            ("approved", ASCENDING),
        ]),
        IndexModel([
            ("account_path.0", ASCENDING),
            ("account_path.1", ASCENDING),
            ("account_path.2", ASCENDING),
            ("book", ASCENDING),
            ("approved", ASCENDING),
        ]),
    ]


def journal_indexes() -> list[IndexModel]:
    """journals 컬렉션 인덱스"""
    return [
        IndexModel([("book", ASCENDING), ("datetime", DESCENDING)]),
    ]


def balance_indexes() -> list[IndexModel]:
    """balances 컬렉션 인덱스

    expireAt TTL 인덱스로 만료된 스냅샷은 MongoDB가 자동 삭제.
    """
    return [
        IndexModel([("key", ASCENDING)]),
        IndexModel([("expireAt", ASCENDING)], expireAfterSeconds=0),
    ]


def lock_indexes(expire_sec: int = Defaults.LOCK_EXPIRE_SEC) -> list[IndexModel]:
    """locks 컬렉션 인덱스

    (account, book) 당 문서 하나만 존재하도록 unique 제약.
    """
    return [
        IndexModel([("account", ASCENDING), ("book", ASCENDING)], unique=True),
        IndexModel([("updatedAt", ASCENDING)], expireAfterSeconds=expire_sec),
    ]
