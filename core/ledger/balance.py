"""
잔액 스냅샷 캐시

수백만 건의 거래 행을 매번 전체 집계하지 않기 위해,
(book, 계정 선택자, 메타 조건) 조합별 집계 결과를 balances 컬렉션에 저장.

- 스냅샷은 마지막으로 포함된 거래 행 _id(high-water mark)를 기록
- 다음 조회는 _id > high-water mark 인 행만 추가 집계
- 갱신 주기(balance_snapshot_sec)가 지난 스냅샷은 백그라운드에서 전체 재집계
- 만료(expireAt)는 MongoDB TTL 인덱스가 처리

주의: high-water mark는 시간이 아닌 ObjectId 비교.
나중에 삽입됐지만 mark보다 작은 _id를 받은 행(문서 재생성, 클라이언트 시계 차이 등)은
증분 집계에서 누락됨. 알려진 한계이며 보정하지 않음.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Mapping

from bson import ObjectId, json_util
from motor.motor_asyncio import AsyncIOMotorClientSession

from core.ledger.entry import round_total
from core.ledger.query import flatten_object
from core.ledger.types import Balance

if TYPE_CHECKING:
    from core.ledger.book import Book

logger = logging.getLogger(__name__)

# 잔액 집계 $group 단계
BALANCE_GROUP: dict[str, Any] = {
    "$group": {
        "_id": None,
        "balance": {"$sum": {"$subtract": ["$credit", "$debit"]}},
        "notes": {"$sum": 1},
        "lastTransactionId": {"$max": "$_id"},
    }
}


def construct_key(
    book: str,
    account: str | None = None,
    meta: Mapping[str, Any] | None = None,
) -> str:
    """사람이 읽을 수 있는 스냅샷 키 (Extended JSON)

    메타 조건은 스칼라 끝값까지 평탄화 후 키 순으로 정렬하므로
    호출자의 dict 키 순서와 무관.
    값의 타입(1 vs "1")과 위치(account vs meta)가 키에 그대로 남음.

    Example:
        >>> construct_key("MyBook", "Liabilities:12345")
        '["MyBook", "Liabilities:12345", []]'
        >>> construct_key("MyBook", "A,B", {"client": {"id": 1}, "approved": True})
        '["MyBook", "A,B", [["approved", true], ["client.id", 1]]]'
    """
    flat_meta = flatten_object(meta, deep=True)
    meta_part = [[key, flat_meta[key]] for key in sorted(flat_meta)]
    return json_util.dumps([book, account, meta_part])


def hash_key(raw_key: str) -> str:
    """스냅샷 키 해시 (인덱스 크기 고정)"""
    return hashlib.sha1(raw_key.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    """드라이버가 naive(UTC) datetime을 돌려주는 경우 보정"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BalanceSnapshotCache:
    """잔액 스냅샷 캐시

    Args:
        book: 소속 Book (db, precision, 스냅샷 주기 설정 제공)
    """

    def __init__(self, book: Book):
        self.book = book

    @property
    def enabled(self) -> bool:
        """스냅샷 사용 여부 (balance_snapshot_sec == 0 이면 비활성)"""
        return self.book.balance_snapshot_sec > 0

    async def get_best_snapshot(
        self,
        account: str | None = None,
        meta: Mapping[str, Any] | None = None,
        session: AsyncIOMotorClientSession | None = None,
    ) -> dict[str, Any] | None:
        """키가 일치하는 가장 최근 스냅샷

        _id 내림차순 (삽입 순서) 기준. 타임스탬프는 충돌/시계 차이 가능성 때문에 사용하지 않음.
        """
        key = hash_key(construct_key(self.book.name, account, meta))
        return await self.book.db.balances.find_one(
            {"key": key},
            sort=[("_id", -1)],
            session=session,
        )

    async def snapshot_balance(
        self,
        account: str | None,
        meta: Mapping[str, Any] | None,
        transaction: ObjectId,
        balance: float,
        notes: int,
        session: AsyncIOMotorClientSession | None = None,
    ) -> bool:
        """스냅샷 문서 삽입

        기존 문서는 수정하지 않음 (새 문서 삽입, 오래된 문서는 TTL로 만료).
        session이 없으면 w=1, j=True로 기록.
        """
        raw_key = construct_key(self.book.name, account, meta)
        now = datetime.now(timezone.utc)
        doc = {
            "key": hash_key(raw_key),
            "rawKey": raw_key,
            "book": self.book.name,
            "account": account,
            "meta": json.dumps(meta or {}, sort_keys=True, default=json_util.default),
            "transaction": transaction,
            "balance": balance,
            "notes": notes,
            "createdAt": now,
            "expireAt": now + timedelta(seconds=self.book.expire_balance_snapshot_sec),
        }

        collection = self.book.db.balances if session else self.book.db.durable("balances")
        result = await collection.insert_one(doc, session=session)
        return result.acknowledged

    async def aggregate(
        self,
        match: dict[str, Any],
        session: AsyncIOMotorClientSession | None = None,
        hint: Any = None,
    ) -> dict[str, Any] | None:
        """$match + BALANCE_GROUP 집계 (일치 행이 없으면 None)"""
        kwargs: dict[str, Any] = {"session": session}
        if hint is not None:
            kwargs["hint"] = hint

        cursor = self.book.db.transactions.aggregate([{"$match": match}, BALANCE_GROUP], **kwargs)
        results = await cursor.to_list(length=1)
        return results[0] if results else None

    def _is_stale(self, snapshot: Mapping[str, Any]) -> bool:
        created_at = _as_utc(snapshot["createdAt"])
        refresh_after = created_at + timedelta(seconds=self.book.balance_snapshot_sec)
        return refresh_after < datetime.now(timezone.utc)

    def _prefers_id_index(self, snapshot: Mapping[str, Any]) -> bool:
        """high-water mark 행이 최근이면 _id 인덱스 범위가 작음"""
        last_transaction: ObjectId = snapshot["transaction"]
        expire_window = timedelta(seconds=self.book.expire_balance_snapshot_sec)
        return last_transaction.generation_time + expire_window > datetime.now(timezone.utc)

    async def get_balance(
        self,
        query: dict[str, Any],
        account: str | None,
        meta: Mapping[str, Any],
        session: AsyncIOMotorClientSession | None = None,
        use_snapshot: bool = True,
    ) -> Balance:
        """잔액 계산

        1. 스냅샷 조회 (있으면 high-water mark 이후 행만 집계)
        2. 스냅샷이 없으면 전체 집계 후 동기 스냅샷 저장
        3. 스냅샷이 오래됐으면 결과는 즉시 반환, 전체 재집계는 백그라운드

        집계 실패는 그대로 전파.

        Args:
            query: 메타 제외 쿼리 (book, account, datetime, approved)
            account: 스냅샷 키용 계정 선택자
            meta: 메타 조건
            session: 외부 트랜잭션 세션
            use_snapshot: False면 스냅샷 조회/저장 생략
        """
        use_snapshot = use_snapshot and self.enabled
        match = {**query, **flatten_object(meta, "meta")}

        snapshot = None
        needs_snapshot = False
        hint = None
        if use_snapshot:
            snapshot = await self.get_best_snapshot(account, meta, session=session)
            if snapshot is not None:
                match["_id"] = {"$gt": snapshot["transaction"]}
                needs_snapshot = self._is_stale(snapshot)
                if self._prefers_id_index(snapshot):
                    hint = [("_id", 1)]
            else:
                needs_snapshot = True

        result = await self.aggregate(match, session=session, hint=hint)

        balance = 0.0
        notes = 0
        if snapshot is not None:
            balance += snapshot["balance"]
            notes += snapshot["notes"]

        if result is not None:
            balance += round_total(result["balance"], self.book.precision)
            notes += result["notes"]

        balance = round_total(balance, self.book.precision)

        if needs_snapshot:
            if snapshot is not None:
                self.book.spawn(self._refresh_snapshot(query, account, meta))
            elif result is not None and result.get("lastTransactionId") is not None:
                await self.snapshot_balance(
                    account,
                    meta,
                    result["lastTransactionId"],
                    balance,
                    notes,
                    session=session,
                )

        return Balance(balance=balance, notes=notes)

    async def _refresh_snapshot(
        self,
        query: dict[str, Any],
        account: str | None,
        meta: Mapping[str, Any],
    ) -> None:
        """전체 재집계 후 새 스냅샷 저장 (백그라운드, 실패는 로그만)

        호출자의 세션은 이미 끝났을 수 있으므로 세션 없이 실행.
        """
        try:
            match = {**query, **flatten_object(meta, "meta")}
            result = await self.aggregate(match)
            if result is None or result.get("lastTransactionId") is None:
                return
            await self.snapshot_balance(
                account,
                meta,
                result["lastTransactionId"],
                round_total(result["balance"], self.book.precision),
                result["notes"],
            )
        except Exception:
            logger.exception(
                "Balance snapshot refresh failed",
                extra={"book": self.book.name, "account": account},
            )
