"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → 프로젝트 루트)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """Book 기본값 상수"""

    PRECISION: int = 8  # 소수점 반올림 자릿수
    MAX_ACCOUNT_PATH: int = 3  # 계정 경로 최대 깊이 (Assets:Receivable:Client)
    BALANCE_SNAPSHOT_SEC: float = 24 * 60 * 60  # 잔액 스냅샷 갱신 주기 (1일)

    # 만료 시간 미지정 시 갱신 주기의 배수로 계산
    EXPIRE_SNAPSHOT_MULTIPLIER: int = 2

    # Write-lock 문서 보관 시간 (경합 지점 용도라 짧게 유지)
    LOCK_EXPIRE_SEC: int = 24 * 60 * 60


class Collections:
    """MongoDB 컬렉션 이름 기본값"""

    TRANSACTIONS: str = "medici_transactions"
    JOURNALS: str = "medici_journals"
    BALANCES: str = "medici_balances"
    LOCKS: str = "medici_locks"


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"

    # 설정 파일
    CONFIG_FILE: Path = CONFIG_DIR / "ledger.yaml"


class Mongo:
    """MongoDB 연결 기본값"""

    URL: str = "mongodb://localhost:27017/?replicaSet=rs0"
    DATABASE: str = "ledger"
    SERVER_SELECTION_TIMEOUT_MS: int = 5000
