"""
테스트 공용 fixture.

분봉은 사람이 읽기 쉽게 시간 오름차순(oldest-first) 종가로 만들고,
엔진 규칙대로 newest-first로 뒤집어서 돌려준다.
"""

from datetime import datetime, timedelta

import pytest

from auto_trader.core.data_provider import PriceBar
from auto_trader.data.portfolio import Candidate


def build_bars(
    closes: list[float],
    volumes: list[float] | None = None,
    start: datetime = datetime(2024, 6, 3, 9, 0),
    minutes: int = 5,
) -> list[PriceBar]:
    """시간 오름차순 종가 → newest-first PriceBar.

    시가는 직전 봉 종가(첫 봉은 자기 종가), 고가/저가는 시가·종가의 최대/최소.
    """
    volumes = volumes or [1_000] * len(closes)
    bars = []
    for i, close in enumerate(closes):
        open_ = closes[i - 1] if i > 0 else close
        bars.append(PriceBar(
            timestamp=start + timedelta(minutes=minutes * i),
            open=float(open_),
            high=float(max(open_, close)),
            low=float(min(open_, close)),
            close=float(close),
            volume=float(volumes[i]),
        ))
    return list(reversed(bars))


def build_candidate(
    code: str = "005930",
    price: float = 10_000,
    baseline_price: float = 10_000,
    change_pct: float = 3.0,
    change_pct_at_detection: float = 1.0,
    volume: float = 1_000_000,
    name: str = "삼성전자",
) -> Candidate:
    return Candidate(
        code=code,
        name=name,
        price=price,
        change_pct=change_pct,
        volume=volume,
        condition_label="test",
        detected_at=datetime(2024, 6, 3, 9, 5),
        baseline_price=baseline_price,
        change_pct_at_detection=change_pct_at_detection,
    )


@pytest.fixture
def make_bars():
    return build_bars


@pytest.fixture
def make_candidate():
    return build_candidate


@pytest.fixture
def momentum_closes() -> list[float]:
    """장시작 급등 조건을 모두 만족하는 25개 종가 (oldest-first).

    완만한 상승 → 등락 반복(+60/-30) → 마지막 3봉 연속 +60.
    RSI ≈ 72.7, MA5 = 10348, MA20 = 10202, 현재가 10450.
    """
    head = [10_000 + 10 * i for i in range(10)]
    swing = [10_150, 10_120, 10_180, 10_150, 10_210, 10_180,
             10_240, 10_210, 10_270, 10_240, 10_300, 10_270]
    tail = [10_330, 10_390, 10_450]
    return head + swing + tail


class FakeClock:
    """time.monotonic 대용."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """asyncio.sleep 대용. 실제로 기다리지 않고 요청된 시간만 기록."""

    def __init__(self, clock: FakeClock | None = None):
        self.calls: list[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper(clock):
    return SleepRecorder(clock)
