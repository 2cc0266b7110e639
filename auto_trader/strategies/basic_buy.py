"""
기본 매수 필터 (분봉 불필요).

[ 전략 흐름 ]
    포착 이후 등락률 변화 drift = 현재 등락률 - 포착 시점 등락률
        ├── min_drift_pct <= drift <= max_drift_pct
        └── 실시간 누적 거래량 >= min_volume

[ 거부권(veto) ]
    이 필터가 켜져 있고 drift <= 0 이면, 다른 전략의 결과와 무관하게
    해당 후보의 매수를 막는다. 판단은 engine/evaluator.py에서 수행.
    기본값은 비활성화.
"""

from dataclasses import dataclass
from typing import Sequence

from auto_trader.core.data_provider import PriceBar
from auto_trader.core.trading_strategy import BuyStrategy, StrategyParams
from auto_trader.data.portfolio import Candidate
from auto_trader.strategies import register


@dataclass
class BasicBuyParams(StrategyParams):
    enabled: bool = False
    start_time: str = "09:00:00"
    end_time: str = "15:19:59"
    min_drift_pct: float = 0.5
    max_drift_pct: float = 10.0
    min_volume: float = 10_000


@register("basic_buy")
class BasicBuyStrategy(BuyStrategy):
    """기본 매수 필터 구현체."""

    params_cls = BasicBuyParams
    uses_bars = False

    @staticmethod
    def vetoes(candidate: Candidate) -> bool:
        """포착 이후 등락률이 오르지 않았으면 True."""
        return candidate.drift_since_detection() <= 0

    def evaluate_bars(
        self,
        candidate: Candidate,
        bars: Sequence[PriceBar],
        params: BasicBuyParams,
    ) -> tuple[bool, str]:
        drift = candidate.drift_since_detection()
        if not (params.min_drift_pct <= drift <= params.max_drift_pct):
            return False, f"등락률 변화 범위 밖 ({drift:+.2f}%p)"
        if candidate.volume < params.min_volume:
            return False, f"거래량 부족 ({candidate.volume:,.0f} < {params.min_volume:,.0f})"
        return True, f"포착 후 등락률 {drift:+.2f}%p"
