"""
매도 판단 / 매수 한도 / 주문 수량 테스트.

핵심 시나리오:
1. 트레일링: 감시 기준 10%, 하락 2%p. 수익률 12 → 11 → 9 에서 9일 때 매도
2. 감시 기준 미도달이면 하락폭이 커도 트레일링 없음
3. 익절(최고 수익률 기준) / 손절 / 시간 청산
4. 종목당 매매 횟수, 최대 보유 종목, 당일 종목 수 한도
5. floor(50000 × (1 - 0.0092) / 4950) = 10
"""

from datetime import date, time

import pytest

from auto_trader.core.broker_api import PriceMode
from auto_trader.data.counters import TradeCounters
from auto_trader.data.portfolio import HoldingPosition
from auto_trader.engine.risk import (
    PositionRiskManager,
    SellReason,
    TradeGate,
    order_price,
    order_quantity,
)
from auto_trader.utils.config import RiskConfig, TradingConfig

MORNING = time(10, 0)


def make_holding(avg_cost: float = 10_000, quantity: int = 10) -> HoldingPosition:
    holding = HoldingPosition(code="005930", name="삼성전자", quantity=quantity, avg_cost=avg_cost)
    holding.update_price(avg_cost)
    return holding


class TestTrailingStop:
    def test_sells_after_drop_from_peak(self):
        risk = PositionRiskManager(RiskConfig(take_profit_pct=20.0, trailing_drop_pct=2.0))
        holding = make_holding()

        holding.update_price(11_200)   # +12%
        assert risk.evaluate(holding, MORNING) is None
        holding.update_price(11_100)   # +11%
        assert risk.evaluate(holding, MORNING) is None
        holding.update_price(10_900)   # +9%, 최고 대비 3%p 하락 (기준 2%p)
        decision = risk.evaluate(holding, MORNING)

        assert decision is not None
        assert decision.reason is SellReason.TRAILING_STOP
        assert decision.quantity == 10
        assert decision.price_mode is PriceMode.MARKET

    def test_never_fires_below_activation(self):
        risk = PositionRiskManager(RiskConfig(trailing_activation_pct=10.0, trailing_drop_pct=3.0))
        holding = make_holding()
        holding.update_price(10_800)   # +8%
        assert risk.evaluate(holding, MORNING) is None
        holding.update_price(10_400)   # +4%, 4%p 하락이지만 감시 기준 미도달
        assert risk.evaluate(holding, MORNING) is None

    def test_peak_never_decreases(self):
        holding = make_holding()
        holding.update_price(11_000)
        holding.update_price(9_000)
        assert holding.max_profit_pct == pytest.approx(10.0)
        assert holding.profit_pct == pytest.approx(-10.0)


class TestExits:
    def test_take_profit_uses_peak(self):
        risk = PositionRiskManager(RiskConfig(trailing_enabled=False))
        holding = make_holding()
        holding.update_price(11_000)   # +10%
        holding.update_price(10_950)   # 현재 +9.5%, 최고 +10%
        decision = risk.evaluate(holding, MORNING)
        assert decision.reason is SellReason.TAKE_PROFIT
        assert decision.price_mode is PriceMode.MARKET

    def test_stop_loss_limit_order(self):
        risk = PositionRiskManager(RiskConfig())
        holding = make_holding()
        holding.update_price(9_850)    # -1.5%
        decision = risk.evaluate(holding, MORNING)
        assert decision.reason is SellReason.STOP_LOSS
        assert decision.price_mode is PriceMode.LIMIT
        assert decision.price == 9_850

    def test_time_liquidation_is_market(self):
        risk = PositionRiskManager(RiskConfig(liquidation_time="15:19:59"))
        holding = make_holding()
        holding.update_price(10_050)
        assert risk.evaluate(holding, time(15, 19, 58)) is None
        decision = risk.evaluate(holding, time(15, 19, 59))
        assert decision.reason is SellReason.TIME_LIQUIDATION
        assert decision.price_mode is PriceMode.MARKET

    def test_disabled_rules(self):
        risk = PositionRiskManager(RiskConfig(
            take_profit_enabled=False,
            stop_loss_enabled=False,
            trailing_enabled=False,
            liquidation_enabled=False,
        ))
        holding = make_holding()
        holding.update_price(5_000)
        assert risk.evaluate(holding, time(15, 30)) is None


class TestOrderSizing:
    def test_quantity_floor(self):
        assert order_quantity(50_000, 0.0092, 4_950) == 10

    def test_quantity_zero_price(self):
        assert order_quantity(50_000, 0.0092, 0) == 0

    def test_quantity_too_expensive(self):
        assert order_quantity(5_000_000, 0.0092, 6_000_000) == 0

    def test_limit_price_rounded_to_tick(self):
        assert order_price(12_345, 0, PriceMode.LIMIT) == 12_300
        assert order_price(12_345, 100, PriceMode.LIMIT) == 12_400

    def test_market_price_is_reference_only(self):
        assert order_price(12_345, 100, PriceMode.MARKET) == 12_345


class TestTradeGate:
    def make_gate(self, **kwargs) -> TradeGate:
        counters = TradeCounters()
        counters.roll_date(date(2024, 6, 3))
        return TradeGate(TradingConfig(**kwargs), counters)

    def test_max_positions(self):
        gate = self.make_gate(max_positions=2)
        assert gate.can_buy("005930", 1)[0]
        ok, reason = gate.can_buy("005930", 2)
        assert not ok
        assert "보유" in reason

    def test_per_stock_limit(self):
        gate = self.make_gate(max_trades_per_stock=2)
        gate.counters.record_trade("005930")
        assert gate.can_buy("005930", 0)[0]
        gate.counters.record_trade("005930")
        assert not gate.can_buy("005930", 0)[0]
        assert gate.can_buy("000660", 0)[0]

    def test_daily_distinct_stock_limit(self):
        gate = self.make_gate(max_daily_stocks=2)
        gate.counters.record_trade("005930")
        gate.counters.record_trade("000660")
        assert not gate.can_buy("035420", 0)[0]
        # 이미 오늘 매매한 종목은 종목 수 한도에 새로 잡히지 않음
        assert gate.can_buy("005930", 0)[0]
