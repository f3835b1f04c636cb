"""
원장 컬렉션 인덱스 초기화

사용법:
    python -m scripts.init_ledger
    python -m scripts.init_ledger --config config/ledger.yaml
"""

import argparse
import asyncio
import logging
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.mongo_adapter import MongoAdapter
from core.config.loader import LedgerConfig, load_config
from core.constants import Defaults
from core.logging import setup_logging

logger = logging.getLogger(__name__)


def create_adapter(config: LedgerConfig) -> MongoAdapter:
    """설정으로부터 MongoAdapter 생성"""
    mongo = config.mongo
    return MongoAdapter(
        mongo.url,
        mongo.database,
        transactions_collection=mongo.transactions_collection,
        journals_collection=mongo.journals_collection,
        balances_collection=mongo.balances_collection,
        locks_collection=mongo.locks_collection,
    )


async def verify_indexes(db: MongoAdapter) -> bool:
    """컬렉션별 인덱스 존재 여부 확인"""
    ok = True
    for name in ("transactions", "journals", "balances", "locks"):
        collection = getattr(db, name)
        indexes = await collection.index_information()
        logger.info(f"{collection.name}: 인덱스 {len(indexes)}개")
        # _id_ 외 인덱스가 하나 이상 있어야 함
        if len(indexes) < 2:
            logger.error(f"{collection.name}: 인덱스가 생성되지 않았습니다")
            ok = False
    return ok


async def main(config_path: Path | None, lock_expire_sec: int) -> None:
    """인덱스 초기화 실행

    Args:
        config_path: ledger.yaml 경로 (None이면 기본 경로)
        lock_expire_sec: locks 문서 TTL
    """
    config = load_config(config_path)
    logger.info(f"인덱스 초기화 시작: {config.mongo.database}")

    async with create_adapter(config) as db:
        await db.init_indexes(lock_expire_sec=lock_expire_sec)

        if await verify_indexes(db):
            logger.info("인덱스 초기화 완료")
        else:
            logger.error("인덱스 검증 실패!")
            raise RuntimeError("인덱스 검증 실패")

    for name, options in config.books.items():
        logger.info(
            f"Book '{name}': precision={options.precision}, "
            f"max_account_path={options.max_account_path}, "
            f"balance_snapshot_sec={options.balance_snapshot_sec}"
        )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="원장 컬렉션 인덱스 초기화"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="ledger.yaml 경로 (기본: config/ledger.yaml)"
    )
    parser.add_argument(
        "--lock-expire-sec",
        type=int,
        default=Defaults.LOCK_EXPIRE_SEC,
        help="계정 잠금 문서 보관 시간 (초)"
    )
    args = parser.parse_args()

    setup_logging("init_ledger")
    asyncio.run(main(args.config, args.lock_expire_sec))
