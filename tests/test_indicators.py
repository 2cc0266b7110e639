"""
기술적 지표 테스트.

1. RSI: 봉 부족 시 50, 하락 없음 → 100, 혼합 구간 값
2. 이동평균: newest-first 정렬 유지
3. 볼린저밴드: 평탄 구간, 음수 배수 오류
4. 호가단위 절사: 가격대별, 멱등성
5. 보조 함수: 거래량 비율, 국소 고점/저점
"""

from datetime import datetime, timedelta

import numpy as np
import pytest

from auto_trader.brokers.mock_broker import generate_sample_bars
from auto_trader.core.data_provider import PriceBar
from auto_trader.analysis.indicators import (
    bollinger_bands,
    local_extrema,
    moving_average,
    pct_change,
    price_range_pct,
    recent_high,
    round_to_tick_size,
    rsi,
    tick_size,
    volume_ratio,
)


class TestRsi:
    def test_not_enough_bars_is_neutral(self, make_bars):
        bars = make_bars([100, 101, 102])
        assert rsi(bars, period=14) == 50.0

    def test_only_gains_is_100(self, make_bars):
        bars = make_bars([100 + i for i in range(16)])
        assert rsi(bars, period=14) == 100.0

    def test_only_losses_is_0(self, make_bars):
        bars = make_bars([200 - i for i in range(16)])
        assert rsi(bars, period=14) == pytest.approx(0.0)

    def test_mixed_window(self, make_bars):
        """상승 2, 하락 1 → RS=2 → RSI=66.67"""
        bars = make_bars([10, 11, 10, 11])
        assert rsi(bars, period=3) == pytest.approx(100 - 100 / 3)

    def test_uses_only_most_recent_window(self, make_bars):
        """오래된 봉의 급락은 최근 구간 RSI에 영향 없음"""
        bars = make_bars([500, 100, 101, 102, 103])
        assert rsi(bars, period=3) == 100.0


class TestMovingAverage:
    def test_output_follows_newest_first(self, make_bars):
        bars = make_bars([1, 2, 3, 4, 5])
        assert moving_average(bars, 3) == pytest.approx([4.0, 3.0, 2.0])

    def test_too_few_bars(self, make_bars):
        assert moving_average(make_bars([1, 2]), 3) == []

    def test_volume_field(self, make_bars):
        bars = make_bars([1, 1, 1], volumes=[10, 20, 30])
        assert moving_average(bars, 2, field="volume") == pytest.approx([25.0, 15.0])


class TestBollinger:
    def test_flat_prices_collapse_band(self, make_bars):
        bands = bollinger_bands(make_bars([1_000] * 25), period=20)
        assert len(bands) == 6
        assert bands[0].upper == bands[0].middle == bands[0].lower == pytest.approx(1_000)

    def test_band_order(self, make_bars):
        bars = make_bars([1_000 + (i % 5) * 10 for i in range(30)])
        for band in bollinger_bands(bars, period=20, multiplier=2.0):
            assert band.lower <= band.middle <= band.upper

    def test_negative_multiplier_rejected(self, make_bars):
        with pytest.raises(ValueError):
            bollinger_bands(make_bars([1_000] * 25), multiplier=-1.0)


class TestTickSize:
    @pytest.mark.parametrize("price, expected", [
        (999, 999),
        (1_003, 1_000),
        (4_997, 4_995),
        (9_999, 9_990),
        (12_345, 12_300),
        (73_456, 73_400),
        (123_456, 123_000),
        (523_456, 523_000),
    ])
    def test_floor_to_tick(self, price, expected):
        assert round_to_tick_size(price) == expected

    def test_band_boundaries(self):
        assert tick_size(1_000) == 5
        assert tick_size(50_000) == 100
        assert tick_size(500_000) == 1_000

    def test_idempotent(self):
        for price in (1_234, 45_678, 98_765, 612_345):
            once = round_to_tick_size(price)
            assert round_to_tick_size(once) == once


class TestHelpers:
    def test_pct_change_zero_base(self):
        assert pct_change(100, 0) == 0.0

    def test_volume_ratio_excludes_current_bar(self, make_bars):
        bars = make_bars([1] * 6, volumes=[100, 100, 100, 100, 100, 300])
        assert volume_ratio(bars, 5) == pytest.approx(3.0)

    def test_recent_high_with_offset(self, make_bars):
        bars = make_bars([10, 20, 30, 15])
        assert recent_high(bars, 2) == 30
        assert recent_high(bars, 2, offset=2) == 20

    def test_price_range(self, make_bars):
        bars = make_bars([100, 110])
        assert price_range_pct(bars, 2) == pytest.approx(10.0)

    def test_local_extrema(self):
        highs = [10, 11, 12, 11, 10, 11, 12, 13, 12, 11]   # newest-first
        bars = [
            PriceBar(timestamp=datetime(2024, 6, 3, 10, 0) - timedelta(minutes=5 * i),
                     open=h - 0.5, high=h, low=h - 1, close=h - 0.5, volume=1_000)
            for i, h in enumerate(highs)
        ]
        peaks, valleys = local_extrema(bars, width=2)
        assert peaks == [2, 7]
        assert valleys == [4]

    def test_local_extrema_flat_top_and_bottom(self):
        def bars_from_highs(highs):
            return [
                PriceBar(timestamp=datetime(2024, 6, 3, 10, 0) - timedelta(minutes=5 * i),
                         open=h - 0.5, high=h, low=h - 1, close=h - 0.5, volume=1_000)
                for i, h in enumerate(highs)
            ]

        # 같은 고가 두 봉 중 최근 봉 하나만 고점
        peaks, _ = local_extrema(bars_from_highs([10, 11, 13, 13, 11, 10]), width=2)
        assert peaks == [2]
        _, valleys = local_extrema(bars_from_highs([13, 12, 10, 10, 12, 13]), width=2)
        assert valleys == [2]


class TestProperties:
    """랜덤워크 분봉 여러 개에 대해 항상 성립해야 하는 성질"""

    CODES = ["005930", "000660", "035420", "051910", "068270"]

    def test_rsi_bounded(self):
        for code in self.CODES:
            bars = generate_sample_bars(code, count=40, volatility=0.02)
            for period in (3, 14, 30):
                assert 0.0 <= rsi(bars, period) <= 100.0

    def test_band_order_on_random_walk(self):
        for code in self.CODES:
            bars = generate_sample_bars(code, count=60, volatility=0.02)
            for band in bollinger_bands(bars, period=20, multiplier=2.0):
                assert band.upper >= band.middle >= band.lower

    def test_rounding_never_exceeds_price(self):
        rng = np.random.default_rng(7)
        for price in rng.uniform(100, 1_000_000, 500):
            rounded = round_to_tick_size(price)
            assert rounded <= price
            assert round_to_tick_size(rounded) == rounded
