"""
조회 조건 변환기

호출자가 넘긴 조회 조건(account, 날짜 범위, 임의 메타 필드)을
transactions 컬렉션용 MongoDB 쿼리로 변환.

- 고정 필드(스키마): 최상위 키
- 그 외: meta.<key>
- 예약어 키: 조용히 무시
- book: 항상 주입
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Mapping

from bson import ObjectId
from dateutil import parser as date_parser

from core.constants import Defaults
from core.ledger.account_path import parse_account_field
from core.ledger.schema import DEFAULT_SCHEMA, LedgerSchema, is_reserved_key

_NUMBER_RE = re.compile(r"^\d+$")

# 쿼리에서 특별 취급하는 키
ACCOUNT_KEY = "account"
START_DATE_KEY = "start_date"
END_DATE_KEY = "end_date"
APPROVED_KEY = "approved"


def parse_date_field(value: Any) -> datetime | None:
    """날짜 입력 정규화

    - datetime: 그대로
    - date: 해당 일 00:00 UTC
    - int/float 또는 숫자 문자열: epoch 밀리초
    - 그 외 문자열: dateutil 범용 파싱 ("2024-01-01", "Jan 1 2099" 등)

    Returns:
        datetime 또는 None (파싱 불가 = "Invalid Date")
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        if _NUMBER_RE.match(value):
            return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
        try:
            return date_parser.parse(value)
        except (ValueError, OverflowError):
            return None
    return None


def parse_date_query(start_date: Any, end_date: Any) -> dict[str, Any]:
    """datetime 범위 조건 생성

    파싱 불가한 경계는 빈 $in 조건으로 바꿔 아무 행도 일치하지 않게 함.
    """
    datetime_filter: dict[str, Any] = {}

    if start_date:
        parsed = parse_date_field(start_date)
        if parsed is None:
            datetime_filter["$in"] = []
        else:
            datetime_filter["$gte"] = parsed
    if end_date:
        parsed = parse_date_field(end_date)
        if parsed is None:
            datetime_filter["$in"] = []
        else:
            datetime_filter["$lte"] = parsed

    return datetime_filter


def flatten_object(
    obj: Mapping[str, Any] | None,
    parent: str | None = None,
    deep: bool = False,
    result: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """중첩 dict를 점(.) 경로 키로 평탄화

    Args:
        obj: 대상 dict
        parent: 키 접두사 (예: "meta")
        deep: True면 중첩 dict를 끝(스칼라)까지 평탄화
        result: 누적 dict (재귀용)

    Example:
        >>> flatten_object({"a": {"$in": [1, 2]}}, "meta")
        {'meta.a': {'$in': [1, 2]}}
        >>> flatten_object({"a": {"$in": [1, 2]}}, deep=True)
        {'a.$in': [1, 2]}
    """
    if result is None:
        result = {}
    if not obj:
        return result

    for key, value in obj.items():
        prop_name = f"{parent}.{key}" if parent else key
        if deep and isinstance(value, Mapping):
            flatten_object(value, prop_name, deep, result)
        else:
            result[prop_name] = value
    return result


def _base_filter(
    query: Mapping[str, Any],
    book_name: str,
    max_account_path: int,
) -> dict[str, Any]:
    filter_query: dict[str, Any] = {
        "book": book_name,
        **parse_account_field(query.get(ACCOUNT_KEY), max_account_path),
    }

    start_date = query.get(START_DATE_KEY)
    end_date = query.get(END_DATE_KEY)
    if start_date or end_date:
        datetime_filter = parse_date_query(start_date, end_date)
        if datetime_filter:
            filter_query["datetime"] = datetime_filter

    return filter_query


def _extra_items(query: Mapping[str, Any]):
    for key, value in query.items():
        if key in (ACCOUNT_KEY, START_DATE_KEY, END_DATE_KEY):
            continue
        if is_reserved_key(key):
            continue
        yield key, value


def parse_filter_query(
    query: Mapping[str, Any],
    book_name: str,
    max_account_path: int = Defaults.MAX_ACCOUNT_PATH,
    schema: LedgerSchema = DEFAULT_SCHEMA,
) -> dict[str, Any]:
    """ledger() 조회 조건 변환

    고정 필드는 최상위, 나머지는 meta.<key>로 배치.
    ObjectId 타입 필드에 문자열이 오면 ObjectId로 변환.
    approved를 지정하지 않으면 승인된 거래만 조회.
    """
    filter_query = _base_filter(query, book_name, max_account_path)

    for key, value in _extra_items(query):
        if isinstance(value, str) and schema.is_object_id_field(key) and ObjectId.is_valid(value):
            value = ObjectId(value)

        if schema.is_known_field(key):
            filter_query[key] = value
        else:
            filter_query[f"meta.{key}"] = value

    filter_query.setdefault(APPROVED_KEY, True)
    return filter_query


def parse_balance_query(
    query: Mapping[str, Any],
    book_name: str,
    max_account_path: int = Defaults.MAX_ACCOUNT_PATH,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """balance() 조회 조건 변환

    잔액 조회에서는 account/날짜/approved 외 모든 키를 메타 조건으로 취급.
    스냅샷 키 계산을 위해 메타 조건을 분리해서 반환.

    Returns:
        (메타 제외 쿼리, 메타 조건 dict)
    """
    filter_query = _base_filter(query, book_name, max_account_path)
    meta: dict[str, Any] = {}

    for key, value in _extra_items(query):
        if key == APPROVED_KEY:
            filter_query[APPROVED_KEY] = value
        else:
            meta[key] = value

    filter_query.setdefault(APPROVED_KEY, True)
    return filter_query, meta
