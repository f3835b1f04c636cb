"""
Ledger 예외 정의

모든 예외는 LedgerError를 상속하며 code 속성(HTTP 유사 정수)을 가짐.
호출자는 메시지 문자열이 아닌 타입으로 분기해야 함.

    LedgerError
    +-- BookConstructorError          (400) Book 옵션 오류
    +-- InvalidAccountPathLengthError (400) 계정 경로 깊이 초과
    +-- TransactionError              (400) 분개 합계 불일치 (total 포함)
    +-- JournalNotFoundError          (403) 분개 없음
    +-- JournalAlreadyVoidedError     (400) 이미 취소된 분개
    +-- ConsistencyError              (400) 원장 정합성 훼손 감지
    +-- JournalSaveError              (500) 분개 저장 실패 (원인 예외 체이닝)
    +-- SessionRequiredError          (400) 세션 필수 작업에 세션 없음
    +-- EntryStateError               (400) 이미 커밋된 Entry 재사용
"""


class LedgerError(Exception):
    """Ledger 예외 기본 클래스"""

    code: int = 500

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class BookConstructorError(LedgerError):
    """Book 생성 옵션이 유효하지 않음"""

    code = 400


class InvalidAccountPathLengthError(LedgerError):
    """계정 경로가 max_account_path보다 깊음"""

    code = 400


class TransactionError(LedgerError):
    """분개 커밋 실패

    불균형 분개의 경우 total에 반올림된 합계(credit - debit)가 담김.
    """

    code = 400

    def __init__(self, message: str, total: float, code: int | None = None):
        super().__init__(message, code)
        self.total = total


class JournalNotFoundError(LedgerError):
    """Book 안에서 분개를 찾을 수 없음"""

    code = 403

    def __init__(self, message: str = "Journal could not be found.", code: int | None = None):
        super().__init__(message, code)


class JournalAlreadyVoidedError(LedgerError):
    """이미 취소(void)된 분개"""

    code = 400

    def __init__(self, message: str = "Journal already voided.", code: int | None = None):
        super().__init__(message, code)


class ConsistencyError(LedgerError):
    """원장 정합성이 훼손되었을 가능성 (동시 수정, 이전 부분 실패 등)"""

    code = 400

    def __init__(self, message: str = "Ledger consistency harmed", code: int | None = None):
        super().__init__(message, code)


class JournalSaveError(LedgerError):
    """분개/거래 행 저장 실패"""

    code = 500


class SessionRequiredError(LedgerError):
    """트랜잭션 세션 없이 호출할 수 없는 작업"""

    code = 400


class EntryStateError(LedgerError):
    """OPEN 상태가 아닌 Entry에 대한 조작"""

    code = 400
