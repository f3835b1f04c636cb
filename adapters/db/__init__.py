"""
데이터베이스 어댑터

MongoDB(motor) 연결 및 트랜잭션 관리.
"""

from adapters.db.mongo_adapter import (
    DURABLE_WRITE_CONCERN,
    MongoAdapter,
    create_client,
)

__all__ = [
    "MongoAdapter",
    "create_client",
    "DURABLE_WRITE_CONCERN",
]
