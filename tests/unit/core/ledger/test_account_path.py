"""계정 경로 테스트"""

import pytest

from core.ledger.account_path import (
    account_selector,
    expand_account_prefixes,
    parse_account_field,
    split_account_path,
)
from core.ledger.errors import InvalidAccountPathLengthError


class TestSplitAccountPath:
    """쓰기용 경로 분해"""

    def test_split_string(self) -> None:
        assert split_account_path("Assets:Receivable:Client") == ["Assets", "Receivable", "Client"]

    def test_single_segment(self) -> None:
        assert split_account_path("Income") == ["Income"]

    def test_list_input(self) -> None:
        assert split_account_path(["Assets", "Cash"]) == ["Assets", "Cash"]

    def test_too_deep_raises(self) -> None:
        """max_account_path 초과 시 예외"""
        with pytest.raises(InvalidAccountPathLengthError) as exc_info:
            split_account_path("A:B:C:D", max_account_path=3)

        assert "maximum 3" in str(exc_info.value)
        assert exc_info.value.code == 400

    def test_custom_depth(self) -> None:
        assert split_account_path("A:B:C:D", max_account_path=4) == ["A", "B", "C", "D"]


class TestParseAccountField:
    """조회용 계정 조건"""

    def test_none(self) -> None:
        assert parse_account_field(None) == {}

    def test_full_depth_uses_accounts(self) -> None:
        assert parse_account_field("A:B:C", 3) == {"accounts": "A:B:C"}

    def test_prefix_uses_segments(self) -> None:
        assert parse_account_field("A:B", 3) == {"account_path.0": "A", "account_path.1": "B"}

    def test_list_becomes_or(self) -> None:
        result = parse_account_field(["A", "B:C:D"], 3)

        assert result == {
            "$or": [
                {"account_path.0": "A"},
                {"accounts": "B:C:D"},
            ]
        }

    def test_single_element_list(self) -> None:
        """원소 1개 리스트는 단일 계정과 동일"""
        assert parse_account_field(["A:B"], 3) == parse_account_field("A:B", 3)

    def test_deeper_than_max_is_not_validated(self) -> None:
        result = parse_account_field("A:B:C:D", 3)

        assert result["account_path.3"] == "D"


class TestAccountHelpers:
    """선택자 / prefix 확장"""

    def test_selector(self) -> None:
        assert account_selector(None) is None
        assert account_selector("A:B") == "A:B"
        assert account_selector(["A", "B"]) == "A,B"

    def test_expand_prefixes(self) -> None:
        result = expand_account_prefixes(["X:Y:AUD", "X:Y:EUR", "Income"])

        assert result == ["Income", "X", "X:Y", "X:Y:AUD", "X:Y:EUR"]

    def test_expand_ignores_empty(self) -> None:
        assert expand_account_prefixes(["", "A"]) == ["A"]
