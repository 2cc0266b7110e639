"""
장마감 종가배팅 전략.

[ 전략 흐름 ]
    장 마감 직전 시간대에 적용.
        ├── rise_lookback봉 전 대비 min_recent_rise_pct 이상 상승  또는  현재가 > 단기 이평
        ├── 현재 봉 거래량 / 직전 volume_window개 평균 >= volume_ratio
        ├── 거래대금(현재가 × 누적 거래량) >= min_trade_value
        └── 최근 volatility_window개 봉 (최고-최저)/최저 <= max_volatility_pct
"""

from dataclasses import dataclass
from typing import Sequence

from auto_trader.analysis.indicators import moving_average, pct_change, price_range_pct, volume_ratio
from auto_trader.core.data_provider import PriceBar
from auto_trader.core.trading_strategy import BuyStrategy, StrategyParams, current_price
from auto_trader.data.portfolio import Candidate
from auto_trader.strategies import register


def trade_value(candidate: Candidate, bars: Sequence[PriceBar], price: float) -> float:
    """거래대금. 실시간 누적 거래량이 없으면 현재 봉 거래량 사용."""
    volume = candidate.volume if candidate.volume > 0 else (bars[0].volume if bars else 0.0)
    return price * volume


@dataclass
class ClosingAuctionParams(StrategyParams):
    start_time: str = "14:50:00"
    end_time: str = "15:19:59"
    min_bars: int = 10
    fallback_threshold: float = 1.0
    short_ma: int = 5
    rise_lookback: int = 3
    min_recent_rise_pct: float = 0.5
    volume_window: int = 5
    volume_ratio: float = 1.5
    min_trade_value: float = 100_000_000
    volatility_window: int = 10
    max_volatility_pct: float = 5.0

    def required_bars(self) -> int:
        return max(
            self.min_bars,
            self.short_ma,
            self.rise_lookback + 1,
            self.volume_window + 1,
            self.volatility_window,
        )


@register("closing_auction")
class ClosingAuctionStrategy(BuyStrategy):
    """장마감 종가배팅 전략 구현체."""

    params_cls = ClosingAuctionParams

    def evaluate_bars(
        self,
        candidate: Candidate,
        bars: Sequence[PriceBar],
        params: ClosingAuctionParams,
    ) -> tuple[bool, str]:
        price = current_price(candidate, bars)

        recent_rise = pct_change(price, bars[params.rise_lookback].close)
        short_ma = moving_average(bars, params.short_ma)[0]
        if recent_rise < params.min_recent_rise_pct and price <= short_ma:
            return False, f"상승 추세 아님 (상승 {recent_rise:.2f}%, 이평 {short_ma:,.1f})"

        ratio = volume_ratio(bars, params.volume_window)
        if ratio < params.volume_ratio:
            return False, f"거래량 급증 부족 ({ratio:.2f} < {params.volume_ratio})"

        value = trade_value(candidate, bars, price)
        if value < params.min_trade_value:
            return False, f"거래대금 부족 ({value:,.0f} < {params.min_trade_value:,.0f})"

        volatility = price_range_pct(bars, params.volatility_window)
        if volatility > params.max_volatility_pct:
            return False, f"변동성 과다 ({volatility:.2f}% > {params.max_volatility_pct}%)"

        return True, f"종가배팅 (거래량 {ratio:.1f}배, 변동성 {volatility:.2f}%)"
