"""
계정 경로 모델

콜론(:)으로 구분된 계층형 계정명 처리.
예: "Assets:Receivable:Client" → ["Assets", "Receivable", "Client"]
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from core.constants import Defaults
from core.ledger.errors import InvalidAccountPathLengthError

ACCOUNT_SEPARATOR = ":"


def split_account_path(
    account_path: str | Sequence[str],
    max_account_path: int = Defaults.MAX_ACCOUNT_PATH,
) -> list[str]:
    """쓰기용 계정 경로 분해 및 깊이 검증

    Args:
        account_path: "A:B:C" 문자열 또는 세그먼트 리스트
        max_account_path: 허용 최대 깊이

    Returns:
        세그먼트 리스트

    Raises:
        InvalidAccountPathLengthError: 깊이가 max_account_path 초과
    """
    if isinstance(account_path, str):
        segments = account_path.split(ACCOUNT_SEPARATOR)
    else:
        segments = list(account_path)

    if len(segments) > max_account_path:
        raise InvalidAccountPathLengthError(
            f"Account path is too deep (maximum {max_account_path})"
        )

    return segments


def parse_account_field(
    account: str | Sequence[str] | None,
    max_account_path: int = Defaults.MAX_ACCOUNT_PATH,
) -> dict[str, Any]:
    """계정 조건을 MongoDB 쿼리 조각으로 변환

    - 깊이 == max_account_path: accounts 필드 완전 일치
    - 깊이 < max_account_path: account_path.N 세그먼트별 일치 (하위 계정 포함)
    - 리스트: 계정별 조각의 $or (원소 1개면 단일 계정과 동일)

    조회 시에는 깊이 검증을 하지 않음 (필터일 뿐).
    """
    if account is None:
        return {}

    if isinstance(account, str):
        segments = account.split(ACCOUNT_SEPARATOR)
        if len(segments) == max_account_path:
            return {"accounts": account}
        return {f"account_path.{i}": segment for i, segment in enumerate(segments)}

    accounts = list(account)
    if len(accounts) == 1:
        return parse_account_field(accounts[0], max_account_path)

    return {"$or": [parse_account_field(acct, max_account_path) for acct in accounts]}


def account_selector(account: str | Sequence[str] | None) -> str | None:
    """스냅샷 키용 계정 선택자 문자열

    리스트는 콤마로 연결 ("Assets,Income").
    """
    if account is None:
        return None
    if isinstance(account, str):
        return account
    return ",".join(account)


def expand_account_prefixes(accounts: Iterable[str]) -> list[str]:
    """전체 계정명 목록을 모든 상위 prefix 포함 목록으로 확장

    예: ["X:Y:AUD"] → ["X", "X:Y", "X:Y:AUD"]

    Returns:
        정렬 및 중복 제거된 계정 목록
    """
    result: set[str] = set()
    for account in accounts:
        if not account:
            continue
        segments = account.split(ACCOUNT_SEPARATOR)
        for depth in range(1, len(segments) + 1):
            result.add(ACCOUNT_SEPARATOR.join(segments[:depth]))
    return sorted(result)
