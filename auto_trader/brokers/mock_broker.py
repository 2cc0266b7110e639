"""
테스트/드라이런용 Mock 증권사 구현.

[ 역할 ]
    실제 증권사 API 없이 엔진 전체 흐름을 돌려보기 위한 구현체 모음.
    주문은 실제로 나가지 않고 기록만 남는다.

[ 포함 클래스 ]
    MockOrderGateway     - core/broker_api.py::OrderGateway 구현체
                           받은 주문을 기록, 지정한 종목은 환경 제한/실패 응답
    MockConditionSearch  - core/broker_api.py::ConditionSearchService 구현체
    MockBarBackend       - core/data_provider.py::BarBackend 구현체
                           종목별 분봉 보관, 지정한 종목은 요청 제한/오류 발생
    MockQuoteStream      - core/data_provider.py::QuoteStream 구현체
    InMemoryCounterStore - core/broker_api.py::CounterStore 구현체
    MockAccountService   - core/broker_api.py::AccountService 구현체

    generate_sample_bars() - numpy 랜덤워크로 샘플 분봉 생성

[ 호출하는 곳 ]
    - run_trader.py --sample (드라이런)
    - tests/ 전반

[ 실전 교체 ]
    실제 증권사 연동 시 이 파일 대신 kiwoom_broker.py 등을 구현해서 주입
"""

import asyncio
import uuid
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Iterable, Optional

import numpy as np
import pandas as pd

from auto_trader.core.broker_api import (
    AccountService,
    BalanceItem,
    ConditionSearchService,
    CounterStore,
    Order,
    OrderGateway,
    OrderResult,
    SearchResult,
    SearchStock,
)
from auto_trader.core.data_provider import (
    BarBackend,
    PriceBar,
    Quote,
    QuoteStream,
    bars_from_dataframe,
)
from auto_trader.core.errors import (
    EnvironmentRestrictedError,
    RateLimitedError,
    TransientNetworkError,
)


def generate_sample_bars(
    code: str,
    count: int = 60,
    initial_price: float = 10_000,
    volatility: float = 0.004,
    drift: float = 0.0005,
    interval_minutes: int = 5,
    end: Optional[datetime] = None,
) -> list[PriceBar]:
    """샘플 분봉 생성 (newest-first). 종목코드로 시드를 고정해 재현 가능."""
    rng = np.random.default_rng(int(code) if code.isdigit() else abs(hash(code)) % 2**32)
    end = end or datetime.now().replace(second=0, microsecond=0)
    timestamps = pd.date_range(end=end, periods=count, freq=f"{interval_minutes}min")

    returns = rng.normal(drift, volatility, count)
    closes = initial_price * np.cumprod(1 + returns)
    opens = closes * (1 + rng.normal(0, volatility / 2, count))
    highs = np.maximum(opens, closes) * (1 + np.abs(rng.normal(0, volatility / 2, count)))
    lows = np.minimum(opens, closes) * (1 - np.abs(rng.normal(0, volatility / 2, count)))
    volumes = rng.lognormal(9, 0.8, count).astype(int)

    df = pd.DataFrame({
        "timestamp": timestamps,
        "open": opens.round(0),
        "high": highs.round(0),
        "low": lows.round(0),
        "close": closes.round(0),
        "volume": volumes,
    })
    return bars_from_dataframe(df)


# ─── 주문 ────────────────────────────────────────────────────────────────────

class MockOrderGateway(OrderGateway):
    """주문 기록용 Mock 게이트웨이.

    사용법:
        orders = MockOrderGateway(restricted_codes={"005930"})
        orders.submit(order, "MOCK")      # 005930이면 EnvironmentRestrictedError
        orders.submitted                  # 성공한 주문 목록
    """

    def __init__(
        self,
        restricted_codes: Iterable[str] = (),
        rejected_codes: Iterable[str] = (),
    ):
        self.restricted_codes = set(restricted_codes)   # 모의투자 환경 제한 응답
        self.rejected_codes = set(rejected_codes)       # success=False 응답
        self.submitted: list[tuple[Order, str]] = []
        self.attempts: list[Order] = []

    def submit(self, order: Order, account_ref: str) -> OrderResult:
        self.attempts.append(order)
        if order.code in self.restricted_codes:
            raise EnvironmentRestrictedError("모의투자 환경에서 지원하지 않는 종목", code="500")
        order_id = str(uuid.uuid4())[:8]
        if order.code in self.rejected_codes:
            return OrderResult(order_id=order_id, success=False, message="주문 거부")
        self.submitted.append((order, account_ref))
        return OrderResult(order_id=order_id, success=True, message="주문 접수")


# ─── 조건검색 ────────────────────────────────────────────────────────────────

class MockConditionSearch(ConditionSearchService):
    """정해둔 종목 목록을 돌려주는 조건검색. fail=True면 예외."""

    def __init__(self, stocks: Iterable[SearchStock] = (), label: str = "mock", fail: bool = False):
        self.stocks = list(stocks)
        self.label = label
        self.fail = fail
        self.calls = 0

    def search(self, condition_ids: list[str]) -> SearchResult:
        self.calls += 1
        if self.fail:
            raise TransientNetworkError("조건검색 서버 응답 없음")
        return SearchResult(
            success=True,
            applied_conditions=list(condition_ids) or [self.label],
            stocks=list(self.stocks),
        )


# ─── 분봉 ────────────────────────────────────────────────────────────────────

class MockBarBackend(BarBackend):
    """종목별 분봉을 보관하는 Mock 백엔드.

    rate_limited_codes는 항상 RateLimitedError,
    failures[code] = n 이면 처음 n번은 TransientNetworkError.
    """

    def __init__(
        self,
        bars: Optional[dict[str, list[PriceBar]]] = None,
        rate_limited_codes: Iterable[str] = (),
        failures: Optional[dict[str, int]] = None,
    ):
        self._bars: dict[str, list[PriceBar]] = dict(bars or {})
        self.rate_limited_codes = set(rate_limited_codes)
        self.failures: dict[str, int] = dict(failures or {})
        self.calls: list[str] = []

    def set_bars(self, code: str, bars: list[PriceBar]) -> None:
        self._bars[code] = list(bars)

    def fetch_bars(self, code: str, granularity: str) -> list[PriceBar]:
        self.calls.append(code)
        if code in self.rate_limited_codes:
            raise RateLimitedError(f"요청 제한: {code}")
        if self.failures.get(code, 0) > 0:
            self.failures[code] -= 1
            raise TransientNetworkError(f"분봉 조회 타임아웃: {code}")
        return list(self._bars.get(code, []))


# ─── 실시간 시세 ─────────────────────────────────────────────────────────────

class MockQuoteStream(QuoteStream):
    """정해둔 Quote를 순서대로 내보내는 스트림."""

    def __init__(self, quotes: Iterable[Quote] = (), delay: float = 0.0):
        self._quotes = list(quotes)
        self.delay = delay

    async def quotes(self) -> AsyncIterator[Quote]:
        for quote in self._quotes:
            if self.delay > 0:
                await asyncio.sleep(self.delay)
            yield quote


def random_walk_quotes(stocks: Iterable[SearchStock], steps: int = 100, seed: int = 0) -> list[Quote]:
    """드라이런용 랜덤워크 시세."""
    rng = np.random.default_rng(seed)
    quotes: list[Quote] = []
    state = {s.code: s for s in stocks}
    prices = {code: s.price for code, s in state.items()}
    for _ in range(steps):
        for code, stock in state.items():
            prices[code] = max(1.0, prices[code] * (1 + rng.normal(0.0005, 0.004)))
            base = stock.price / (1 + stock.change_rate / 100) if stock.change_rate > -100 else stock.price
            change_pct = (prices[code] - base) / base * 100 if base > 0 else 0.0
            quotes.append(Quote(
                code=code,
                price=round(prices[code]),
                change_abs=round(prices[code] - base),
                change_pct=round(change_pct, 2),
                volume=stock.volume,
                name=stock.name,
            ))
    return quotes


# ─── 잔고 ────────────────────────────────────────────────────────────────────

class MockAccountService(AccountService):
    """정해둔 잔고를 돌려주는 계좌 조회. fail=True면 예외."""

    def __init__(self, items: Iterable[BalanceItem] = (), fail: bool = False):
        self.items = list(items)
        self.fail = fail
        self.calls: list[str] = []

    def balance(self, account_ref: str) -> list[BalanceItem]:
        self.calls.append(account_ref)
        if self.fail:
            raise TransientNetworkError("잔고 조회 실패 (mock)")
        return list(self.items)


# ─── 카운터 저장소 ───────────────────────────────────────────────────────────

class InMemoryCounterStore(CounterStore):
    def __init__(self, data: Optional[dict[str, Any]] = None):
        self.data = data
        self.saves = 0

    def load(self) -> Optional[dict[str, Any]]:
        return dict(self.data) if self.data is not None else None

    def save(self, data: dict[str, Any]) -> None:
        self.data = dict(data)
        self.saves += 1


def sample_universe() -> list[SearchStock]:
    """드라이런용 조건검색 결과."""
    return [
        SearchStock(code="005930", name="삼성전자", price=71_000, change_rate=2.1, volume=8_500_000),
        SearchStock(code="000660", name="SK하이닉스", price=182_500, change_rate=3.4, volume=2_100_000),
        SearchStock(code="035420", name="NAVER", price=201_000, change_rate=1.2, volume=640_000),
        SearchStock(code="122630", name="KODEX 레버리지", price=18_450, change_rate=4.0, volume=12_000_000),
    ]


def sample_bars_for(stocks: Iterable[SearchStock], count: int = 60, end: Optional[datetime] = None) -> dict[str, list[PriceBar]]:
    end = end or datetime.now().replace(second=0, microsecond=0) - timedelta(minutes=1)
    return {
        s.code: generate_sample_bars(s.code, count=count, initial_price=s.price, end=end)
        for s in stocks
    }
