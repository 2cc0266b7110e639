"""
매수 전략 추상 클래스 정의.

[ 역할 ]
    매수 판단 로직의 인터페이스를 정의.
    후보 종목(Candidate) + 최근 분봉(newest-first) + 전략 파라미터를 받아
    (매수 여부, 사유)를 돌려주는 순수 함수 형태로 동작한다.

[ 구현체 ]
    - strategies/momentum_open.py      (장시작 급등주)
    - strategies/bollinger_breakout.py (볼린저밴드 반등)
    - strategies/closing_auction.py    (장마감 종가배팅)
    - strategies/scalping_pullback.py  (스캘핑 눌림목)
    - strategies/breakout.py           (돌파)
    - strategies/basic_buy.py          (기본 매수 필터, 분봉 불필요)

[ 폴백(degraded) 모드 ]
    분봉이 전략의 최소 개수보다 적으면(조회 실패 포함) 분봉 조건 대신
    "포착 이후 상승률 >= fallback_threshold" 하나로 판단한다.
    요청 제한 때문에 분봉 조회가 자주 실패하므로 반드시 유지해야 하는 동작.

[ 호출하는 곳 ]
    - engine/evaluator.py::StrategyEvaluator.evaluate()
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence

from auto_trader.core.data_provider import PriceBar
from auto_trader.data.portfolio import Candidate


@dataclass
class StrategyParams:
    """전략 공통 파라미터. 각 전략은 이를 상속해 고유 파라미터를 추가한다."""
    enabled: bool = True
    start_time: str = "09:00:00"        # 전략 적용 시간대 시작
    end_time: str = "15:19:59"          # 전략 적용 시간대 종료
    min_bars: int = 0                   # 분봉 조건 판단에 필요한 최소 봉 수
    fallback_threshold: float = 2.0     # 폴백: 포착 이후 최소 상승률 (%)

    def required_bars(self) -> int:
        return self.min_bars


def current_price(candidate: Candidate, bars: Sequence[PriceBar]) -> float:
    """실시간 가격이 있으면 그것을, 없으면 최근 봉 종가."""
    if candidate.price > 0:
        return candidate.price
    if bars:
        return bars[0].close
    return 0.0


class BuyStrategy(ABC):
    """매수 전략 추상 클래스.

    새 전략을 만들려면 이 클래스를 상속받아 params_cls와 evaluate_bars()를 구현하고
    strategies 패키지의 @register("이름")로 등록하면 된다.
    """

    name: str = ""
    params_cls: type[StrategyParams] = StrategyParams
    uses_bars: bool = True   # False면 분봉 없이 판단 (폴백 없음)

    @classmethod
    def build_params(cls, raw: dict[str, Any] | None = None) -> StrategyParams:
        """설정 dict를 파라미터 데이터클래스로 변환. 모르는 키는 무시."""
        raw = raw or {}
        fields = cls.params_cls.__dataclass_fields__
        return cls.params_cls(**{k: v for k, v in raw.items() if k in fields})

    def should_buy(
        self,
        candidate: Candidate,
        bars: Sequence[PriceBar],
        params: StrategyParams,
    ) -> tuple[bool, str]:
        """매수 조건 판단. 분봉이 부족하면 폴백 판단.

        Returns:
            (매수 여부, 사유)
        """
        if self.uses_bars and (not bars or len(bars) < params.required_bars()):
            return self.fallback(candidate, params)
        return self.evaluate_bars(candidate, bars, params)

    def fallback(self, candidate: Candidate, params: StrategyParams) -> tuple[bool, str]:
        """분봉 없이 포착 이후 상승률로만 판단."""
        if candidate.baseline_price <= 0:
            return False, "폴백: 기준가 없음"
        move = candidate.relative_move_pct()
        if move >= params.fallback_threshold:
            return True, f"폴백: 포착 대비 {move:.2f}% 상승 (>= {params.fallback_threshold}%)"
        return False, f"폴백: 포착 대비 {move:.2f}% (< {params.fallback_threshold}%)"

    @abstractmethod
    def evaluate_bars(
        self,
        candidate: Candidate,
        bars: Sequence[PriceBar],
        params: StrategyParams,
    ) -> tuple[bool, str]:
        """분봉이 충분할 때의 매수 조건 판단."""
        ...
