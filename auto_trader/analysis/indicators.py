"""
기술적 지표 계산 모듈.

[ 역할 ]
    분봉 시퀀스(newest-first)에 대한 순수 함수 모음.
    RSI, 이동평균, 볼린저밴드, 호가단위 절사 및 전략 공용 보조 함수.

[ 정렬 규칙 ]
    입력 bars는 최신 봉이 index 0.
    moving_average / bollinger_bands의 출력도 입력 순서를 따른다:
    out[k]는 bars[k:k+period] 구간 값이므로 out[0]이 가장 최근 구간.

[ 호출하는 곳 ]
    - strategies/*.py: 매수 조건 판단
    - engine/scheduler.py, engine/risk.py: 주문 가격 호가 절사
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from auto_trader.core.data_provider import PriceBar

NEUTRAL_RSI = 50.0

# (상한가격, 호가단위). 상한 미만이면 해당 단위 적용, 모두 넘으면 1000원
TICK_SIZE_BANDS: tuple[tuple[float, int], ...] = (
    (1_000, 1),
    (5_000, 5),
    (10_000, 10),
    (50_000, 50),
    (100_000, 100),
    (500_000, 500),
)
TOP_TICK_SIZE = 1_000


@dataclass(frozen=True)
class BollingerBand:
    upper: float
    middle: float
    lower: float


def rsi(bars: Sequence[PriceBar], period: int = 14) -> float:
    """최근 period 구간 단일 윈도우 RSI.

    Wilder 평활이 아니라 최근 period+1개 봉만으로 평균 상승/하락폭을 구한다.
    봉이 부족하면 중립값 50을 반환한다.
    """
    if period <= 0 or len(bars) < period + 1:
        return NEUTRAL_RSI

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        diff = bars[i - 1].close - bars[i].close
        if diff > 0:
            gains += diff
        else:
            losses -= diff

    avg_gain = gains / period
    avg_loss = losses / period
    if avg_loss == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


def moving_average(bars: Sequence[PriceBar], period: int, field: str = "close") -> list[float]:
    """단순 이동평균. 봉이 period개 미만이면 빈 리스트."""
    if period <= 0 or len(bars) < period:
        return []
    values = np.asarray([getattr(b, field) for b in bars], dtype=float)
    cumsum = np.concatenate(([0.0], np.cumsum(values)))
    sums = cumsum[period:] - cumsum[:-period]
    return (sums / period).tolist()


def bollinger_bands(bars: Sequence[PriceBar], period: int = 20, multiplier: float = 2.0) -> list[BollingerBand]:
    """볼린저밴드. 전형가격 (high+low+close)/3의 이동평균 ± multiplier·모표준편차."""
    if multiplier < 0:
        raise ValueError(f"multiplier는 0 이상이어야 합니다: {multiplier}")
    if period <= 0 or len(bars) < period:
        return []

    typical = np.asarray([(b.high + b.low + b.close) / 3.0 for b in bars], dtype=float)
    windows = sliding_window_view(typical, period)
    means = windows.mean(axis=1)
    stds = windows.std(axis=1)  # ddof=0 (모표준편차)

    return [
        BollingerBand(upper=float(m + multiplier * s), middle=float(m), lower=float(m - multiplier * s))
        for m, s in zip(means, stds)
    ]


def tick_size(price: float) -> int:
    """가격대별 호가단위."""
    for upper, step in TICK_SIZE_BANDS:
        if price < upper:
            return step
    return TOP_TICK_SIZE


def round_to_tick_size(price: float) -> int:
    """호가단위로 내림 절사. 두 번 적용해도 결과가 같다."""
    step = tick_size(price)
    return int(math.floor(price / step) * step)


# ─── 전략 공용 보조 함수 ─────────────────────────────────────────────────────

def pct_change(new: float, old: float) -> float:
    """old 대비 new 변화율 (%). old가 0 이하이면 0."""
    if old <= 0:
        return 0.0
    return (new - old) / old * 100.0


def average_volume(bars: Sequence[PriceBar], window: int, offset: int = 1) -> float:
    """bars[offset:offset+window] 평균 거래량. 기본은 현재 봉을 제외한 직전 구간."""
    sample = bars[offset:offset + window]
    if not sample:
        return 0.0
    return sum(b.volume for b in sample) / len(sample)


def volume_ratio(bars: Sequence[PriceBar], window: int) -> float:
    """현재 봉 거래량 / 직전 window개 평균 거래량."""
    if not bars:
        return 0.0
    avg = average_volume(bars, window)
    if avg <= 0:
        return 0.0
    return bars[0].volume / avg


def recent_high(bars: Sequence[PriceBar], lookback: int, offset: int = 0) -> float:
    sample = bars[offset:offset + lookback]
    return max((b.high for b in sample), default=0.0)


def price_range_pct(bars: Sequence[PriceBar], window: int) -> float:
    """최근 window개 봉의 (최고가 - 최저가) / 최저가 (%)."""
    sample = bars[:window]
    if not sample:
        return 0.0
    low = min(b.low for b in sample)
    high = max(b.high for b in sample)
    return pct_change(high, low)


def local_extrema(bars: Sequence[PriceBar], width: int = 2) -> tuple[list[int], list[int]]:
    """양옆 width개 봉보다 높은 고점 / 낮은 저점의 인덱스 (newest-first 기준, 최근 것부터).

    이전 봉과 같은 값은 허용하므로 평평한 고점/저점은 가장 최근 봉 하나로 잡힌다.
    """
    peaks: list[int] = []
    valleys: list[int] = []
    for i in range(width, len(bars) - width):
        newer = bars[i - width:i]
        older = bars[i + 1:i + width + 1]
        if all(bars[i].high > n.high for n in newer) and all(bars[i].high >= o.high for o in older):
            peaks.append(i)
        if all(bars[i].low < n.low for n in newer) and all(bars[i].low <= o.low for o in older):
            valleys.append(i)
    return peaks, valleys
