"""
매수 판단 통합 모듈.

[ 역할 ]
    등록된 전략들을 각자의 파라미터/시간대로 평가해서 최종 매수 여부를 결정.

[ 판단 순서 ]
    1. basic_buy 필터가 켜져 있고 포착 이후 등락률 변화 <= 0 → 무조건 매수 안 함 (veto)
    2. 켜진 전략 중 현재 시각이 해당 전략 시간대에 드는 것만 평가
    3. 하나라도 True면 매수 (OR)

[ 호출하는 곳 ]
    - engine/scheduler.py::ExecutionScheduler._try_buy()
    - data/market_data.py: required_bars()로 분봉 충분 여부 기준 결정
"""

import logging
from dataclasses import dataclass, field
from datetime import time
from typing import Any, Sequence

from auto_trader.core.data_provider import PriceBar
from auto_trader.core.trading_strategy import BuyStrategy, StrategyParams
from auto_trader.data.portfolio import Candidate
from auto_trader.strategies import create_strategy, list_strategies
from auto_trader.strategies.basic_buy import BasicBuyStrategy
from auto_trader.utils.config import in_window

logger = logging.getLogger("auto_trader.evaluator")

BASELINE_FILTER = "basic_buy"


@dataclass
class BuyDecision:
    """evaluate()의 반환값."""
    code: str
    buy: bool
    matched: list[str] = field(default_factory=list)        # 매수 신호를 낸 전략
    reasons: dict[str, str] = field(default_factory=dict)   # 전략별 판단 사유
    vetoed: bool = False


class StrategyEvaluator:
    """전략 묶음 평가기. 평가 중 파라미터는 읽기만 한다."""

    def __init__(self, strategy_configs: dict[str, dict[str, Any]] | None = None):
        strategy_configs = strategy_configs or {}
        unknown = set(strategy_configs) - set(list_strategies())
        if unknown:
            logger.warning(f"등록되지 않은 전략 설정 무시: {sorted(unknown)}")

        self.strategies: dict[str, BuyStrategy] = {}
        self.params: dict[str, StrategyParams] = {}
        for name in list_strategies():
            strategy = create_strategy(name)
            self.strategies[name] = strategy
            self.params[name] = strategy.build_params(strategy_configs.get(name))

    def enabled_strategies(self) -> list[str]:
        return [name for name, p in self.params.items() if p.enabled]

    def required_bars(self) -> int:
        """켜진 분봉 전략들의 최소 봉 수 중 최댓값."""
        return max(
            (
                self.params[name].required_bars()
                for name in self.enabled_strategies()
                if self.strategies[name].uses_bars
            ),
            default=0,
        )

    def evaluate(self, candidate: Candidate, bars: Sequence[PriceBar], now: time) -> BuyDecision:
        decision = BuyDecision(code=candidate.code, buy=False)

        baseline = self.params.get(BASELINE_FILTER)
        if baseline is not None and baseline.enabled and BasicBuyStrategy.vetoes(candidate):
            decision.vetoed = True
            decision.reasons[BASELINE_FILTER] = (
                f"veto: 포착 후 등락률 변화 {candidate.drift_since_detection():+.2f}%p <= 0"
            )
            return decision

        for name in self.enabled_strategies():
            params = self.params[name]
            if not in_window(now, params.start_time, params.end_time):
                decision.reasons[name] = f"시간대 밖 ({params.start_time}~{params.end_time})"
                continue
            ok, reason = self.strategies[name].should_buy(candidate, bars, params)
            decision.reasons[name] = reason
            if ok:
                decision.matched.append(name)

        decision.buy = bool(decision.matched)
        return decision
