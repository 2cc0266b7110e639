"""
분봉 조회 게이트웨이 모듈.

[ 역할 ]
    BarBackend를 감싸서 요청 제한을 피하기 위한 정책을 적용.
        (a) 조건검색 직후 search_cooldown초 동안 분봉 조회 중단
        (b) batch_size개씩 묶어서 조회, 배치 사이 batch_delay초 대기
        (c) 실패 시 max_retries회까지 재시도 (대기 = retry_base_delay × 시도횟수),
            요청 제한(RateLimitedError)이면 즉시 중단
        (d) 받은 봉 수가 required_bars 미만이면 빈 리스트 → 전략은 폴백 판단

[ 의존성 ]
    - core/data_provider.py::BarBackend (분봉 소스 추상화)

[ 호출하는 곳 ]
    - engine/scheduler.py: iter_batches()로 배치 단위 조회 후 평가
"""

import asyncio
import logging
import time
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

from auto_trader.core.data_provider import BarBackend, PriceBar
from auto_trader.core.errors import RateLimitedError
from auto_trader.utils.config import MarketDataConfig

logger = logging.getLogger("auto_trader.market_data")

RequiredBars = Union[int, Callable[[], int]]


class MarketDataGateway:
    """요청 제한을 고려한 분봉 조회기.

    사용 예:
        gateway = MarketDataGateway(backend, config, required_bars=evaluator.required_bars)
        async for batch, bars_by_code in gateway.iter_batches(codes):
            ...
    """

    def __init__(
        self,
        backend: BarBackend,
        config: Optional[MarketDataConfig] = None,
        required_bars: RequiredBars = 0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self.config = config or MarketDataConfig()
        self._required_bars = required_bars
        self._clock = clock
        self._sleep = sleep
        self._last_search_at: Optional[float] = None

    @property
    def required_bars(self) -> int:
        if callable(self._required_bars):
            return int(self._required_bars())
        return int(self._required_bars)

    # ─── 검색 직후 대기 ─────────────────────────────────────────────────────

    def mark_search(self) -> None:
        """대량 조건검색 직후 호출. 이후 search_cooldown초 동안 조회 중단."""
        self._last_search_at = self._clock()

    def cooldown_remaining(self) -> float:
        if self._last_search_at is None:
            return 0.0
        elapsed = self._clock() - self._last_search_at
        return max(0.0, self.config.search_cooldown - elapsed)

    def in_cooldown(self) -> bool:
        return self.cooldown_remaining() > 0

    # ─── 조회 ──────────────────────────────────────────────────────────────

    def batches(self, codes: list[str]) -> list[list[str]]:
        size = max(1, int(self.config.batch_size))
        return [codes[i:i + size] for i in range(0, len(codes), size)]

    async def fetch_bars(self, code: str) -> list[PriceBar]:
        """한 종목 분봉 조회. 실패/부족/대기 중이면 빈 리스트."""
        if self.in_cooldown():
            return []

        attempts = max(1, int(self.config.max_retries))
        for attempt in range(1, attempts + 1):
            try:
                bars = await asyncio.to_thread(self.backend.fetch_bars, code, self.config.granularity)
            except RateLimitedError:
                logger.debug(f"[{code}] 요청 제한, 이번 주기 건너뜀")
                return []
            except Exception as e:
                if attempt >= attempts:
                    logger.warning(f"[{code}] 분봉 조회 실패 ({attempt}/{attempts}), 폴백 판단: {e}")
                    return []
                delay = self.config.retry_base_delay * attempt
                logger.debug(f"[{code}] 분봉 조회 실패 ({attempt}/{attempts}), {delay:.1f}초 후 재시도: {e}")
                await self._sleep(delay)
                continue
            return self._sufficient(code, list(bars))
        return []

    def _sufficient(self, code: str, bars: list[PriceBar]) -> list[PriceBar]:
        need = self.required_bars
        if len(bars) < need:
            logger.debug(f"[{code}] 분봉 부족 ({len(bars)} < {need}), 폴백 판단")
            return []
        return bars

    async def fetch_batch(self, codes: list[str]) -> dict[str, list[PriceBar]]:
        """한 배치 안의 종목은 동시에 조회."""
        results = await asyncio.gather(*(self.fetch_bars(code) for code in codes))
        return dict(zip(codes, results))

    async def iter_batches(self, codes: list[str]) -> AsyncIterator[tuple[list[str], dict[str, list[PriceBar]]]]:
        """배치 단위로 (종목 목록, 종목별 분봉)을 내보낸다. 배치 사이 대기.

        검색 직후 대기 중이면 조회 없이 빈 분봉으로 내보내서 폴백 판단하게 한다.
        """
        for index, batch in enumerate(self.batches(codes)):
            if self.in_cooldown():
                logger.info(f"조건검색 직후 대기 중 ({self.cooldown_remaining():.0f}초 남음), 분봉 조회 생략")
                yield batch, {code: [] for code in batch}
                continue
            if index > 0 and self.config.batch_delay > 0:
                await self._sleep(self.config.batch_delay)
            yield batch, await self.fetch_batch(batch)
