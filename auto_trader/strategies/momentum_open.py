"""
장시작 급등주 전략.

[ 전략 흐름 ]
    장 시작 직후 시간대에만 적용. 아래 조건을 모두 만족해야 매수.
        ├── 최근 consecutive_rises개 봉 연속 상승 (종가 기준)
        ├── 현재가 > 단기 이평 > 중기 이평
        ├── 현재 봉 거래량 / 직전 volume_window개 평균 >= volume_ratio
        ├── 현재 봉, 직전 봉 각각 min_rise_pct 이상 상승
        ├── 최근 high_lookback개 봉 고점 대비 하락폭 <= max_drawdown_pct
        ├── 최근 bullish_window개 봉 중 양봉 비율 >= min_bullish_ratio
        └── rsi_min <= RSI <= rsi_max

[ 파라미터 (config.yaml의 strategies.momentum_open) ]
    공통(enabled, start_time, end_time, min_bars, fallback_threshold) + 아래 필드
"""

from dataclasses import dataclass
from typing import Sequence

from auto_trader.analysis.indicators import moving_average, pct_change, recent_high, rsi, volume_ratio
from auto_trader.core.data_provider import PriceBar
from auto_trader.core.trading_strategy import BuyStrategy, StrategyParams, current_price
from auto_trader.data.portfolio import Candidate
from auto_trader.strategies import register


@dataclass
class MomentumOpenParams(StrategyParams):
    start_time: str = "09:00:00"
    end_time: str = "09:30:00"
    min_bars: int = 20
    fallback_threshold: float = 2.0
    consecutive_rises: int = 2
    short_ma: int = 5
    mid_ma: int = 20
    volume_window: int = 5
    volume_ratio: float = 2.0
    min_rise_pct: float = 0.3
    high_lookback: int = 10
    max_drawdown_pct: float = 3.0
    bullish_window: int = 5
    min_bullish_ratio: float = 0.6
    rsi_period: int = 14
    rsi_min: float = 50.0
    rsi_max: float = 80.0

    def required_bars(self) -> int:
        return max(
            self.min_bars,
            self.mid_ma,
            self.short_ma,
            self.rsi_period + 1,
            self.volume_window + 1,
            self.consecutive_rises + 1,
            self.high_lookback,
            self.bullish_window,
            3,  # 현재/직전 봉 상승률 계산
        )


@register("momentum_open")
class MomentumOpenStrategy(BuyStrategy):
    """장시작 급등주 전략 구현체."""

    params_cls = MomentumOpenParams

    def evaluate_bars(
        self,
        candidate: Candidate,
        bars: Sequence[PriceBar],
        params: MomentumOpenParams,
    ) -> tuple[bool, str]:
        price = current_price(candidate, bars)

        for i in range(params.consecutive_rises):
            if bars[i].close <= bars[i + 1].close:
                return False, f"연속 상승 실패 ({i + 1}번째 봉)"

        short_ma = moving_average(bars, params.short_ma)[0]
        mid_ma = moving_average(bars, params.mid_ma)[0]
        if not (price > short_ma > mid_ma):
            return False, f"이평 정배열 아님 (가격 {price:,.0f}, 단기 {short_ma:,.1f}, 중기 {mid_ma:,.1f})"

        ratio = volume_ratio(bars, params.volume_window)
        if ratio < params.volume_ratio:
            return False, f"거래량 급증 부족 ({ratio:.2f} < {params.volume_ratio})"

        rise_now = pct_change(bars[0].close, bars[1].close)
        rise_prev = pct_change(bars[1].close, bars[2].close)
        if rise_now < params.min_rise_pct or rise_prev < params.min_rise_pct:
            return False, f"봉 상승률 부족 (현재 {rise_now:.2f}%, 직전 {rise_prev:.2f}%)"

        high = recent_high(bars, params.high_lookback)
        drawdown = (high - price) / high * 100 if high > 0 else 0.0
        if drawdown > params.max_drawdown_pct:
            return False, f"고점 대비 하락 과다 ({drawdown:.2f}% > {params.max_drawdown_pct}%)"

        window = bars[:params.bullish_window]
        bullish = sum(1 for b in window if b.close > b.open) / len(window)
        if bullish < params.min_bullish_ratio:
            return False, f"양봉 비율 부족 ({bullish:.2f} < {params.min_bullish_ratio})"

        value = rsi(bars, params.rsi_period)
        if not (params.rsi_min <= value <= params.rsi_max):
            return False, f"RSI 범위 밖 ({value:.1f})"

        return True, f"장시작 급등 (거래량 {ratio:.1f}배, RSI {value:.1f})"
