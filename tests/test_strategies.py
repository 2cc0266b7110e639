"""
매수 전략 테스트.

1. 레지스트리: 6개 전략 등록, 모르는 이름은 ValueError
2. 폴백: 분봉 없음/부족 시 포착 대비 상승률로 판단
3. 전략별 분봉 조건 대표 시나리오
"""

from datetime import datetime, timedelta

import pytest

from auto_trader.core.data_provider import PriceBar
from auto_trader.strategies import create_strategy, list_strategies
from auto_trader.strategies.basic_buy import BasicBuyStrategy
from auto_trader.strategies.closing_auction import trade_value


class TestRegistry:
    def test_all_strategies_registered(self):
        assert list_strategies() == sorted([
            "basic_buy",
            "bollinger_breakout",
            "breakout",
            "closing_auction",
            "momentum_open",
            "scalping_pullback",
        ])

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            create_strategy("no_such_strategy")

    def test_build_params_ignores_unknown_keys(self):
        strategy = create_strategy("momentum_open")
        params = strategy.build_params({"volume_ratio": 3.0, "bogus": 1})
        assert params.volume_ratio == 3.0
        assert not hasattr(params, "bogus")


class TestFallback:
    """분봉이 없으면 포착 이후 상승률 >= fallback_threshold 로만 판단"""

    def test_rise_above_threshold_buys(self, make_candidate):
        strategy = create_strategy("momentum_open")
        params = strategy.build_params({"fallback_threshold": 2.0})
        candidate = make_candidate(price=10_300, baseline_price=10_000)
        ok, reason = strategy.should_buy(candidate, [], params)
        assert ok
        assert "폴백" in reason

    def test_rise_below_threshold_does_not_buy(self, make_candidate):
        strategy = create_strategy("momentum_open")
        params = strategy.build_params({"fallback_threshold": 2.0})
        candidate = make_candidate(price=10_100, baseline_price=10_000)
        ok, _ = strategy.should_buy(candidate, [], params)
        assert not ok

    def test_missing_baseline_does_not_buy(self, make_candidate):
        strategy = create_strategy("breakout")
        params = strategy.build_params()
        candidate = make_candidate(price=10_500, baseline_price=0)
        ok, _ = strategy.should_buy(candidate, [], params)
        assert not ok

    def test_insufficient_bars_use_fallback(self, make_bars, make_candidate):
        strategy = create_strategy("closing_auction")
        params = strategy.build_params()
        bars = make_bars([10_000] * (params.required_bars() - 1))
        candidate = make_candidate(price=10_150, baseline_price=10_000)
        ok, reason = strategy.should_buy(candidate, bars, params)
        assert ok
        assert "폴백" in reason


class TestMomentumOpen:
    def test_all_conditions_pass(self, make_bars, make_candidate, momentum_closes):
        strategy = create_strategy("momentum_open")
        params = strategy.build_params()
        volumes = [1_000] * (len(momentum_closes) - 1) + [5_000]
        bars = make_bars(momentum_closes, volumes)
        candidate = make_candidate(price=10_450, baseline_price=10_450)
        ok, reason = strategy.should_buy(candidate, bars, params)
        assert ok, reason

    def test_no_volume_surge(self, make_bars, make_candidate, momentum_closes):
        strategy = create_strategy("momentum_open")
        params = strategy.build_params()
        bars = make_bars(momentum_closes)
        candidate = make_candidate(price=10_450, baseline_price=10_000)
        ok, reason = strategy.should_buy(candidate, bars, params)
        assert not ok
        assert "거래량" in reason


class TestBollingerBreakout:
    def test_large_bounce_excluded(self, make_bars, make_candidate):
        strategy = create_strategy("bollinger_breakout")
        params = strategy.build_params()
        bars = make_bars([10_000] * 24 + [10_600], [1_000] * 24 + [5_000])
        ok, reason = strategy.should_buy(make_candidate(price=10_600), bars, params)
        assert not ok
        assert "반등" in reason

    def test_trend_and_volume(self, make_bars, make_candidate):
        strategy = create_strategy("bollinger_breakout")
        params = strategy.build_params()
        closes = [10_000] * 22 + [10_020, 10_050, 10_100]
        bars = make_bars(closes, [1_000] * 24 + [2_000])
        ok, reason = strategy.should_buy(make_candidate(price=10_100), bars, params)
        assert ok, reason


class TestClosingAuction:
    def test_trade_value_falls_back_to_bar_volume(self, make_bars, make_candidate):
        bars = make_bars([10_000, 10_000], [100, 300])
        candidate = make_candidate(volume=0)
        assert trade_value(candidate, bars, 10_000) == 3_000_000

    def test_low_trade_value_rejected(self, make_bars, make_candidate):
        strategy = create_strategy("closing_auction")
        params = strategy.build_params()
        closes = [10_000] * 12 + [10_100]
        bars = make_bars(closes, [1_000] * 12 + [3_000])
        candidate = make_candidate(price=10_100, volume=1_000)
        ok, reason = strategy.should_buy(candidate, bars, params)
        assert not ok
        assert "거래대금" in reason


# newest-first. index 3 저점(10,000)은 index 7 고점(10,220) 대비 약 2.2% 눌림, 이후 3봉 반등.
PULLBACK_CLOSES = [
    10_150, 10_100, 10_050, 10_000, 10_060, 10_120, 10_180, 10_220, 10_170, 10_120,
    10_110, 10_100, 10_090, 10_080, 10_070, 10_060, 10_050, 10_040, 10_030, 10_020,
]


def spread_bars(closes: list[float], volumes: list[float] | None = None) -> list[PriceBar]:
    """newest-first 종가 → 시가 = 종가, 고가/저가 = 종가 ± 5 인 봉."""
    volumes = volumes or [1_000] * len(closes)
    newest = datetime(2024, 6, 3, 10, 25)
    return [
        PriceBar(timestamp=newest - timedelta(minutes=i), open=c, high=c + 5, low=c - 5, close=c, volume=v)
        for i, (c, v) in enumerate(zip(closes, volumes))
    ]


SURGE = [3_000] + [1_000] * (len(PULLBACK_CLOSES) - 1)


class TestScalpingPullback:
    def test_no_pattern_with_volume_surge(self, make_bars, make_candidate):
        strategy = create_strategy("scalping_pullback")
        params = strategy.build_params()
        bars = make_bars([10_000] * 25, [1_000] * 24 + [3_000])
        ok, reason = strategy.should_buy(make_candidate(price=10_000), bars, params)
        assert ok, reason

    def test_no_pattern_without_volume(self, make_bars, make_candidate):
        strategy = create_strategy("scalping_pullback")
        params = strategy.build_params()
        bars = make_bars([10_000] * 25)
        ok, _ = strategy.should_buy(make_candidate(price=10_000), bars, params)
        assert not ok

    def test_pullback_rebound_passes(self, make_candidate):
        """눌림 약 2.25%, 저점 대비 약 1.55% 반등, RSI 약 57.7"""
        strategy = create_strategy("scalping_pullback")
        params = strategy.build_params()
        ok, reason = strategy.should_buy(make_candidate(price=10_150), spread_bars(PULLBACK_CLOSES), params)
        assert ok, reason
        assert "눌림목 반등" in reason

    def test_pullback_too_deep(self, make_candidate):
        strategy = create_strategy("scalping_pullback")
        params = strategy.build_params({"max_pullback_pct": 2.0})
        bars = spread_bars(PULLBACK_CLOSES, SURGE)
        ok, reason = strategy.should_buy(make_candidate(price=10_150), bars, params)
        assert not ok
        assert "눌림 깊이" in reason

    def test_flat_top_still_counts_as_peak(self, make_candidate):
        """고점이 두 봉에 걸쳐 같아도 패턴으로 인식해서 깊이 조건을 적용한다"""
        closes = list(PULLBACK_CLOSES)
        closes[8] = closes[7]
        strategy = create_strategy("scalping_pullback")
        params = strategy.build_params({"max_pullback_pct": 2.0})
        ok, reason = strategy.should_buy(make_candidate(price=10_150), spread_bars(closes, SURGE), params)
        assert not ok
        assert "눌림 깊이" in reason

    def test_too_few_bars_since_low(self, make_candidate):
        strategy = create_strategy("scalping_pullback")
        params = strategy.build_params({"min_rebound_bars": 4})
        ok, reason = strategy.should_buy(make_candidate(price=10_150), spread_bars(PULLBACK_CLOSES), params)
        assert not ok
        assert "봉 수 부족" in reason

    def test_rebound_too_small(self, make_candidate):
        strategy = create_strategy("scalping_pullback")
        params = strategy.build_params()
        ok, reason = strategy.should_buy(make_candidate(price=10_020), spread_bars(PULLBACK_CLOSES), params)
        assert not ok
        assert "반등 부족" in reason

    def test_needs_volume_or_rsi(self, make_candidate):
        strategy = create_strategy("scalping_pullback")
        params = strategy.build_params({"rsi_max": 50.0})
        candidate = make_candidate(price=10_150)

        ok, reason = strategy.should_buy(candidate, spread_bars(PULLBACK_CLOSES), params)
        assert not ok
        assert "확인 신호 없음" in reason

        ok, reason = strategy.should_buy(candidate, spread_bars(PULLBACK_CLOSES, SURGE), params)
        assert ok, reason


class TestBreakout:
    def _bars(self, make_bars):
        closes = [10_000 + 10 * i for i in range(24)] + [10_400]
        return make_bars(closes, [1_000] * 24 + [5_000])

    def test_breakout_passes(self, make_bars, make_candidate):
        strategy = create_strategy("breakout")
        params = strategy.build_params()
        candidate = make_candidate(price=10_400, change_pct=3.0)
        ok, reason = strategy.should_buy(candidate, self._bars(make_bars), params)
        assert ok, reason

    def test_day_change_outside_band(self, make_bars, make_candidate):
        strategy = create_strategy("breakout")
        params = strategy.build_params()
        candidate = make_candidate(price=10_400, change_pct=20.0)
        ok, reason = strategy.should_buy(candidate, self._bars(make_bars), params)
        assert not ok
        assert "등락률" in reason


class TestBasicBuy:
    def test_disabled_by_default(self):
        assert create_strategy("basic_buy").build_params().enabled is False

    def test_veto_when_no_drift(self, make_candidate):
        assert BasicBuyStrategy.vetoes(make_candidate(change_pct=1.0, change_pct_at_detection=1.0))
        assert not BasicBuyStrategy.vetoes(make_candidate(change_pct=1.5, change_pct_at_detection=1.0))

    def test_drift_window(self, make_candidate):
        strategy = create_strategy("basic_buy")
        params = strategy.build_params({"enabled": True})
        ok, _ = strategy.should_buy(make_candidate(change_pct=3.0, change_pct_at_detection=1.0), [], params)
        assert ok
        ok, _ = strategy.should_buy(make_candidate(change_pct=15.0, change_pct_at_detection=1.0), [], params)
        assert not ok
