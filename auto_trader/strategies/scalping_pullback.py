"""
스캘핑 눌림목 전략.

[ 전략 흐름 ]
    최근 search_window개 봉에서 양옆 2봉보다 높은 고점 / 낮은 저점을 찾는다.
        ├── 가장 최근 저점과 그 이전 고점 쌍이 있으면
        │     ├── 눌림 깊이 (고점-저점)/고점 이 [min_pullback_pct, max_pullback_pct]
        │     ├── 저점 이후 봉 수 >= min_rebound_bars
        │     ├── 저점 대비 현재가 상승 >= min_rebound_pct
        │     └── 거래량 급증 또는 RSI 범위 충족
        └── 쌍이 없으면 거래량 급증만으로 판단
"""

from dataclasses import dataclass
from typing import Sequence

from auto_trader.analysis.indicators import local_extrema, pct_change, rsi, volume_ratio
from auto_trader.core.data_provider import PriceBar
from auto_trader.core.trading_strategy import BuyStrategy, StrategyParams, current_price
from auto_trader.data.portfolio import Candidate
from auto_trader.strategies import register

EXTREMA_WIDTH = 2


@dataclass
class ScalpingPullbackParams(StrategyParams):
    start_time: str = "09:30:00"
    end_time: str = "14:50:00"
    min_bars: int = 20
    fallback_threshold: float = 1.0
    search_window: int = 20
    min_pullback_pct: float = 1.0
    max_pullback_pct: float = 5.0
    min_rebound_pct: float = 0.5
    min_rebound_bars: int = 2
    volume_window: int = 5
    volume_ratio: float = 1.5
    rsi_period: int = 14
    rsi_min: float = 40.0
    rsi_max: float = 70.0

    def required_bars(self) -> int:
        return max(
            self.min_bars,
            self.volume_window + 1,
            self.rsi_period + 1,
            2 * EXTREMA_WIDTH + 1,
        )


@register("scalping_pullback")
class ScalpingPullbackStrategy(BuyStrategy):
    """스캘핑 눌림목 전략 구현체."""

    params_cls = ScalpingPullbackParams

    def evaluate_bars(
        self,
        candidate: Candidate,
        bars: Sequence[PriceBar],
        params: ScalpingPullbackParams,
    ) -> tuple[bool, str]:
        price = current_price(candidate, bars)
        ratio = volume_ratio(bars, params.volume_window)
        surge = ratio >= params.volume_ratio

        peaks, valleys = local_extrema(bars[:params.search_window], EXTREMA_WIDTH)
        valley = valleys[0] if valleys else None
        peak = next((p for p in peaks if valley is not None and p > valley), None)

        if valley is None or peak is None:
            if surge:
                return True, f"눌림 패턴 없음, 거래량 급증 ({ratio:.1f}배)"
            return False, f"눌림 패턴 없음, 거래량 부족 ({ratio:.2f} < {params.volume_ratio})"

        high = bars[peak].high
        low = bars[valley].low
        pullback = (high - low) / high * 100 if high > 0 else 0.0
        if not (params.min_pullback_pct <= pullback <= params.max_pullback_pct):
            return False, f"눌림 깊이 범위 밖 ({pullback:.2f}%)"

        if valley < params.min_rebound_bars:
            return False, f"저점 이후 봉 수 부족 ({valley} < {params.min_rebound_bars})"

        rebound = pct_change(price, low)
        if rebound < params.min_rebound_pct:
            return False, f"저점 대비 반등 부족 ({rebound:.2f}% < {params.min_rebound_pct}%)"

        value = rsi(bars, params.rsi_period)
        rsi_ok = params.rsi_min <= value <= params.rsi_max
        if not (surge or rsi_ok):
            return False, f"확인 신호 없음 (거래량 {ratio:.2f}배, RSI {value:.1f})"

        return True, f"눌림목 반등 (눌림 {pullback:.2f}%, 반등 {rebound:.2f}%)"
