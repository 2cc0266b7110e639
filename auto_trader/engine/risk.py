"""
보유 종목 매도 판단 및 매수 한도 관리 모듈.

[ 역할 ]
    PositionRiskManager - 보유 종목별 매도 조건 판단 (틱마다 호출)
    TradeGate           - 매수 전 보유/매매 횟수 한도 확인
    order_quantity()    - 종목당 매수금액 기준 주문 수량 계산

[ 매도 판단 순서 (먼저 걸린 조건 하나만 적용) ]
    0. 최고 수익률 갱신: max_profit_pct = max(max_profit_pct, profit_pct)
    1. 트레일링 스탑: 최고 수익률 >= 감시 기준 이고 최고 대비 하락폭 >= 하락 기준
    2. 익절: 최고 수익률 >= 목표 수익률
    3. 손절: 현재 수익률 <= 손절 기준 (음수)
    4. 시간 청산: 현재 시각 >= 청산 시각 → 시장가 전량 매도

[ 호출하는 곳 ]
    - engine/scheduler.py
"""

import logging
import math
from dataclasses import dataclass
from datetime import time
from enum import Enum
from typing import Optional

from auto_trader.analysis.indicators import round_to_tick_size
from auto_trader.core.broker_api import PriceMode
from auto_trader.data.counters import TradeCounters
from auto_trader.data.portfolio import HoldingPosition
from auto_trader.utils.config import RiskConfig, TradingConfig, parse_clock

logger = logging.getLogger("auto_trader.risk")


class SellReason(Enum):
    TRAILING_STOP = "trailing_stop"
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    TIME_LIQUIDATION = "time_liquidation"


@dataclass
class SellDecision:
    """evaluate()의 반환값. 보유 수량 전량 매도."""
    code: str
    reason: SellReason
    quantity: int
    price_mode: PriceMode
    price: float
    detail: str = ""


def order_price(current_price: float, offset: float, mode: PriceMode) -> float:
    """지정가면 현재가 + offset을 호가단위로 절사, 시장가면 현재가(참고용)."""
    if mode is PriceMode.MARKET:
        return current_price
    return float(round_to_tick_size(current_price + offset))


def order_quantity(amount_per_stock: float, fee_rate: float, price: float) -> int:
    """floor(종목당 매수금액 × (1 - 수수료율) / 가격). 가격이 0 이하면 0."""
    if price <= 0:
        return 0
    # 부동소수 오차로 정확히 나누어떨어지는 경우가 1주 줄지 않도록 보정
    return max(0, math.floor(amount_per_stock * (1 - fee_rate) / price + 1e-9))


class PositionRiskManager:
    """보유 종목 매도 조건 판단기."""

    def __init__(self, config: RiskConfig):
        self.config = config
        self._liquidation_time = parse_clock(config.liquidation_time)

    def evaluate(self, holding: HoldingPosition, now: time) -> Optional[SellDecision]:
        """매도 조건 판단. 조건 없으면 None.

        holding.max_profit_pct는 여기서 갱신된다 (호출 측에서 공유 상태에 반영).
        """
        cfg = self.config
        holding.max_profit_pct = max(holding.max_profit_pct, holding.profit_pct)
        peak = holding.max_profit_pct
        current = holding.profit_pct

        if cfg.trailing_enabled and peak >= cfg.trailing_activation_pct:
            drop = peak - current
            if drop >= cfg.trailing_drop_pct:
                return self._decision(
                    holding, SellReason.TRAILING_STOP, PriceMode.parse(cfg.trailing_price_mode),
                    f"최고 {peak:.2f}% 대비 {drop:.2f}%p 하락 (현재 {current:.2f}%)",
                )

        if cfg.take_profit_enabled and peak >= cfg.take_profit_pct:
            return self._decision(
                holding, SellReason.TAKE_PROFIT, PriceMode.parse(cfg.take_profit_price_mode),
                f"목표 수익률 도달 ({peak:.2f}% >= {cfg.take_profit_pct}%)",
            )

        if cfg.stop_loss_enabled and current <= cfg.stop_loss_pct:
            return self._decision(
                holding, SellReason.STOP_LOSS, PriceMode.parse(cfg.stop_loss_price_mode),
                f"손절 ({current:.2f}% <= {cfg.stop_loss_pct}%)",
            )

        if cfg.liquidation_enabled and now >= self._liquidation_time:
            return self._decision(
                holding, SellReason.TIME_LIQUIDATION, PriceMode.MARKET,
                f"청산 시각 도달 ({cfg.liquidation_time})",
            )

        return None

    def _decision(
        self,
        holding: HoldingPosition,
        reason: SellReason,
        mode: PriceMode,
        detail: str,
    ) -> SellDecision:
        return SellDecision(
            code=holding.code,
            reason=reason,
            quantity=holding.quantity,
            price_mode=mode,
            price=order_price(holding.current_price, self.config.sell_price_offset, mode),
            detail=detail,
        )


class TradeGate:
    """매수 한도 확인. 카운터는 주문 성공 시 스케줄러가 올린다."""

    def __init__(self, config: TradingConfig, counters: TradeCounters):
        self.config = config
        self.counters = counters

    def can_buy(self, code: str, open_positions: int) -> tuple[bool, str]:
        cfg = self.config
        if open_positions >= cfg.max_positions:
            return False, f"최대 보유 종목 수 도달 ({open_positions}/{cfg.max_positions})"
        traded = self.counters.trades_for(code)
        if traded >= cfg.max_trades_per_stock:
            return False, f"종목당 매매 횟수 초과 ({traded}/{cfg.max_trades_per_stock})"
        if code not in self.counters.daily_codes and self.counters.daily_count >= cfg.max_daily_stocks:
            return False, f"당일 매매 종목 수 초과 ({self.counters.daily_count}/{cfg.max_daily_stocks})"
        return True, ""
