"""
돌파 전략.

[ 전략 흐름 ]
    ├── 거래량: 현재 봉 거래량이 직전 1/3/5봉 평균의 각 계수배 중 하나라도 넘으면 급증
    ├── 거래대금(현재가 × 누적 거래량) >= min_trade_value
    ├── 고점 돌파: 직전 high_lookback봉 고점 대비 min_breakout_pct 이상 위
    │     └── 미달 시 완화: min_breakout_pct × breakout_relax_coef 이상이고
    │         rise_lookback봉 전 대비 min_short_rise_pct 이상 상승했으면 통과
    ├── 당일 등락률이 [min_change_pct × change_relax_coef, max_change_pct × change_expand_coef]
    ├── 현재가 > 단기 이평
    └── RSI >= rsi_min × rsi_relax_coef
"""

from dataclasses import dataclass
from typing import Sequence

from auto_trader.analysis.indicators import (
    average_volume,
    moving_average,
    pct_change,
    recent_high,
    rsi,
)
from auto_trader.core.data_provider import PriceBar
from auto_trader.core.trading_strategy import BuyStrategy, StrategyParams, current_price
from auto_trader.data.portfolio import Candidate
from auto_trader.strategies import register
from auto_trader.strategies.closing_auction import trade_value


@dataclass
class BreakoutParams(StrategyParams):
    start_time: str = "09:30:00"
    end_time: str = "14:50:00"
    min_bars: int = 20
    fallback_threshold: float = 2.0
    volume_coef_1: float = 2.0
    volume_coef_3: float = 1.8
    volume_coef_5: float = 1.5
    min_trade_value: float = 50_000_000
    high_lookback: int = 10
    min_breakout_pct: float = 0.5
    breakout_relax_coef: float = 0.5
    rise_lookback: int = 3
    min_short_rise_pct: float = 1.0
    min_change_pct: float = 2.0
    max_change_pct: float = 15.0
    change_relax_coef: float = 0.8
    change_expand_coef: float = 1.2
    short_ma: int = 5
    rsi_period: int = 14
    rsi_min: float = 50.0
    rsi_relax_coef: float = 0.9

    def required_bars(self) -> int:
        return max(
            self.min_bars,
            6,  # 직전 5봉 평균 거래량
            self.high_lookback + 1,
            self.rise_lookback + 1,
            self.short_ma,
            self.rsi_period + 1,
        )


@register("breakout")
class BreakoutStrategy(BuyStrategy):
    """돌파 전략 구현체."""

    params_cls = BreakoutParams

    def _volume_surge(self, bars: Sequence[PriceBar], params: BreakoutParams) -> tuple[bool, str]:
        current = bars[0].volume
        for window, coef in ((1, params.volume_coef_1), (3, params.volume_coef_3), (5, params.volume_coef_5)):
            avg = average_volume(bars, window)
            if avg > 0 and current >= avg * coef:
                return True, f"{window}봉 평균 {current / avg:.1f}배"
        return False, "1/3/5봉 평균 대비 거래량 급증 없음"

    def evaluate_bars(
        self,
        candidate: Candidate,
        bars: Sequence[PriceBar],
        params: BreakoutParams,
    ) -> tuple[bool, str]:
        price = current_price(candidate, bars)

        surge, surge_reason = self._volume_surge(bars, params)
        if not surge:
            return False, surge_reason

        value = trade_value(candidate, bars, price)
        if value < params.min_trade_value:
            return False, f"거래대금 부족 ({value:,.0f} < {params.min_trade_value:,.0f})"

        high = recent_high(bars, params.high_lookback, offset=1)
        distance = pct_change(price, high)
        if distance < params.min_breakout_pct:
            short_rise = pct_change(price, bars[params.rise_lookback].close)
            relaxed = params.min_breakout_pct * params.breakout_relax_coef
            if distance < relaxed or short_rise < params.min_short_rise_pct:
                return False, f"고점 돌파 미달 (고점 대비 {distance:.2f}%, 단기 상승 {short_rise:.2f}%)"

        low_band = params.min_change_pct * params.change_relax_coef
        high_band = params.max_change_pct * params.change_expand_coef
        if not (low_band <= candidate.change_pct <= high_band):
            return False, f"등락률 범위 밖 ({candidate.change_pct:.2f}%, 허용 {low_band:.2f}~{high_band:.2f}%)"

        short_ma = moving_average(bars, params.short_ma)[0]
        if price <= short_ma:
            return False, f"단기 이평 하회 ({price:,.0f} <= {short_ma:,.1f})"

        value_rsi = rsi(bars, params.rsi_period)
        floor = params.rsi_min * params.rsi_relax_coef
        if value_rsi < floor:
            return False, f"RSI 미달 ({value_rsi:.1f} < {floor:.1f})"

        return True, f"고점 돌파 ({distance:.2f}%, {surge_reason}, RSI {value_rsi:.1f})"
