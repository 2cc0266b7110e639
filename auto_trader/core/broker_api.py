"""
증권사 주문/조건검색/잔고/카운터 저장소 추상 클래스 정의.

[ 역할 ]
    증권사와의 통신을 추상화하는 인터페이스 정의.
    실제 증권사(키움, 한투 등) 교체 시 이 클래스들만 구현하면 됨.
    엔진은 주문 결과 중 성공/실패만 읽고 주문 상태를 다시 조회하지 않는다.

[ 구현체 ]
    - brokers/mock_broker.py::MockOrderGateway, MockConditionSearch, MockAccountService (테스트/드라이런)
    - data/counters.py::JsonCounterStore, brokers/mock_broker.py::InMemoryCounterStore

[ 호출하는 곳 ]
    - engine/scheduler.py::ExecutionScheduler에서 주입받아 사용
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from auto_trader.core.errors import ValidationError

STOCK_CODE_PATTERN = re.compile(r"^\d{6}$")


# ─── 주문 관련 Enum / Dataclass ─────────────────────────────────────────────

class OrderSide(Enum):
    """주문 방향."""
    BUY = "buy"
    SELL = "sell"


class PriceMode(Enum):
    """주문 타입: 시장가(MARKET) 또는 지정가(LIMIT)."""
    MARKET = "market"
    LIMIT = "limit"

    @classmethod
    def parse(cls, value: "str | PriceMode") -> "PriceMode":
        """설정 값("market", "limit", "시장가", "지정가")을 PriceMode로 변환."""
        if isinstance(value, PriceMode):
            return value
        text = str(value).strip().lower()
        if text in ("market", "시장가"):
            return cls.MARKET
        if text in ("limit", "지정가"):
            return cls.LIMIT
        raise ValueError(f"알 수 없는 주문 타입: {value}")


def validate_stock_code(code: str) -> str:
    """6자리 숫자 종목코드만 허용 (ELW, ETN 등 비표준 코드 제외)."""
    code = str(code).strip()
    if not STOCK_CODE_PATTERN.match(code):
        raise ValidationError(f"지원하지 않는 종목코드 형식: {code} (6자리 숫자만 지원)")
    return code


@dataclass
class Order:
    """엔진이 만들어 OrderGateway에 넘기는 주문."""
    code: str
    side: OrderSide
    quantity: int
    price: float = 0.0                      # 지정가 주문 가격 (시장가는 참고용)
    price_mode: PriceMode = PriceMode.MARKET
    reason: str = ""                        # 주문 사유 (로깅용)

    def validate(self) -> None:
        """주문 전송 전 형식 검증. 실패 시 ValidationError."""
        validate_stock_code(self.code)
        if int(self.quantity) != self.quantity or self.quantity <= 0:
            raise ValidationError(f"주문 수량은 1 이상의 정수여야 합니다: {self.quantity}")
        if self.price_mode is PriceMode.LIMIT and self.price <= 0:
            raise ValidationError(f"지정가 주문 시 주문 가격이 필요합니다: {self.price}")


@dataclass
class OrderResult:
    """submit()의 반환값."""
    order_id: str
    success: bool
    message: str = ""


@dataclass
class SearchStock:
    """조건검색 결과 종목 한 건."""
    code: str
    name: str
    price: float = 0.0
    change_rate: float = 0.0   # 등락률 (%)
    volume: float = 0.0
    change_abs: float = 0.0


@dataclass
class SearchResult:
    """search()의 반환값."""
    success: bool
    applied_conditions: list[str] = field(default_factory=list)
    stocks: list[SearchStock] = field(default_factory=list)


@dataclass
class BalanceItem:
    """계좌 잔고 종목 한 건."""
    code: str
    name: str = ""
    quantity: int = 0
    avg_cost: float = 0.0   # 매입 단가
    price: float = 0.0      # 현재가


# ─── 추상 클래스 ────────────────────────────────────────────────────────────

class OrderGateway(ABC):
    """주문 전송 추상 클래스."""

    @abstractmethod
    def submit(self, order: Order, account_ref: str) -> OrderResult:
        """주문 전송.

        Args:
            order: 주문 정보
            account_ref: 계좌 식별자

        Raises:
            EnvironmentRestrictedError: 모의투자 환경 제한 (스킵 처리됨)
        """
        ...


class ConditionSearchService(ABC):
    """조건검색 추상 클래스."""

    @abstractmethod
    def search(self, condition_ids: list[str]) -> SearchResult:
        """활성화된 조건식들로 종목 검색."""
        ...


class CounterStore(ABC):
    """매매 카운터 저장소 (key-value)."""

    @abstractmethod
    def load(self) -> Optional[dict[str, Any]]:
        """저장된 카운터 읽기. 없으면 None."""
        ...

    @abstractmethod
    def save(self, data: dict[str, Any]) -> None:
        """카운터 저장."""
        ...


class AccountService(ABC):
    """계좌 잔고 조회 추상 클래스. 엔진 시작 시 보유 종목 초기화에 사용."""

    @abstractmethod
    def balance(self, account_ref: str) -> list[BalanceItem]:
        """보유 종목 목록. 수량 0인 종목은 포함하지 않아도 된다."""
        ...
