"""
자동매매 엔진 예외 정의.

[ 분류 ]
    RateLimitedError           - 증권사 API 요청 제한. 같은 주기 안에서 재시도하지 않고 건너뜀
    EnvironmentRestrictedError - 모의투자 환경 제한으로 거부된 주문. 에러가 아닌 스킵으로 기록
    ValidationError            - 잘못된 종목코드/수량/가격. 해당 종목만 건너뛰고 계속 진행
    TransientNetworkError      - 일시적 네트워크 오류. 재시도 후 폴백 판단으로 전환
    ConfigurationError         - 계좌번호 누락 등 설정 오류. 해당 틱의 주문 단계만 중단

[ 호출하는 곳 ]
    - data/market_data.py: RateLimitedError / TransientNetworkError 처리
    - engine/scheduler.py: 종목 단위로 잡아서 나머지 종목 평가를 계속
"""


class TradingError(Exception):
    """엔진 예외의 공통 부모."""


class RateLimitedError(TradingError):
    """증권사가 요청 제한(throttling)을 알려온 경우."""


class EnvironmentRestrictedError(TradingError):
    """모의투자 등 환경 제약으로 주문이 거부된 경우."""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code


class ValidationError(TradingError):
    """종목코드/수량/가격 형식 오류."""


class TransientNetworkError(TradingError):
    """재시도로 회복 가능한 통신 오류."""


class ConfigurationError(TradingError):
    """주문에 필요한 설정(계좌번호 등)이 없는 경우."""
