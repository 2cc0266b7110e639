"""
볼린저밴드 반등/돌파 전략.

[ 전략 흐름 ]
    장중 시간대에 적용.
        ├── 현재 봉 시가→고가 반등폭 > max_bounce_pct 이면 제외 (이미 튄 종목)
        ├── 현재가 > 단기 이평  또는  rise_lookback봉 전 대비 min_recent_rise_pct 이상 상승
        ├── 현재 봉 거래량 / 직전 volume_window개 평균 >= volume_ratio
        └── (옵션) require_lower_band_touch: 최근 band_touch_lookback개 봉 저가가
            볼린저 하단 이하를 찍은 적이 있어야 함
"""

from dataclasses import dataclass
from typing import Sequence

from auto_trader.analysis.indicators import bollinger_bands, moving_average, pct_change, volume_ratio
from auto_trader.core.data_provider import PriceBar
from auto_trader.core.trading_strategy import BuyStrategy, StrategyParams, current_price
from auto_trader.data.portfolio import Candidate
from auto_trader.strategies import register


@dataclass
class BollingerBreakoutParams(StrategyParams):
    start_time: str = "09:30:00"
    end_time: str = "14:50:00"
    min_bars: int = 20
    fallback_threshold: float = 1.5
    max_bounce_pct: float = 5.0
    short_ma: int = 5
    rise_lookback: int = 3
    min_recent_rise_pct: float = 0.5
    volume_window: int = 10
    volume_ratio: float = 1.5
    band_period: int = 20
    band_multiplier: float = 2.0
    require_lower_band_touch: bool = False
    band_touch_lookback: int = 5

    def required_bars(self) -> int:
        need = max(self.min_bars, self.short_ma, self.rise_lookback + 1, self.volume_window + 1)
        if self.require_lower_band_touch:
            need = max(need, self.band_period + self.band_touch_lookback - 1)
        return need


@register("bollinger_breakout")
class BollingerBreakoutStrategy(BuyStrategy):
    """볼린저밴드 전략 구현체."""

    params_cls = BollingerBreakoutParams

    def evaluate_bars(
        self,
        candidate: Candidate,
        bars: Sequence[PriceBar],
        params: BollingerBreakoutParams,
    ) -> tuple[bool, str]:
        price = current_price(candidate, bars)
        bar = bars[0]

        bounce = pct_change(bar.high, bar.open)
        if bounce > params.max_bounce_pct:
            return False, f"시가 대비 고가 반등 과다 ({bounce:.2f}% > {params.max_bounce_pct}%)"

        short_ma = moving_average(bars, params.short_ma)[0]
        recent_rise = pct_change(price, bars[params.rise_lookback].close)
        if price <= short_ma and recent_rise < params.min_recent_rise_pct:
            return False, f"단기 추세 미달 (가격 {price:,.0f} <= 이평 {short_ma:,.1f}, 상승 {recent_rise:.2f}%)"

        ratio = volume_ratio(bars, params.volume_window)
        if ratio < params.volume_ratio:
            return False, f"거래량 급증 부족 ({ratio:.2f} < {params.volume_ratio})"

        if params.require_lower_band_touch:
            bands = bollinger_bands(bars, params.band_period, params.band_multiplier)
            touched = any(
                bars[i].low <= bands[i].lower
                for i in range(min(params.band_touch_lookback, len(bands)))
            )
            if not touched:
                return False, "볼린저 하단 터치 없음"

        return True, f"볼린저 반등 (거래량 {ratio:.1f}배, 최근 상승 {recent_rise:.2f}%)"
