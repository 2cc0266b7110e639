"""
Yahoo Finance 분봉 백엔드.

[ 역할 ]
    core/data_provider.py::BarBackend 구현체.
    증권사 분봉 API 없이 드라이런/장중 관찰용으로 Yahoo Finance 분봉을 사용.
    코스피(.KS)로 먼저 조회하고 비어 있으면 코스닥(.KQ)으로 다시 조회한다.

[ 봉 단위 매핑 ]
    "1" → 1m, "5" → 5m, "15" → 15m, "30" → 30m, "60" → 60m, "day" → 1d
    "3" 은 Yahoo에 없으므로 1m을 받아서 3분봉으로 리샘플링

[ 오류 ]
    YFRateLimitError → RateLimitedError (게이트웨이가 재시도하지 않음)
    그 외 예외는 그대로 던져서 게이트웨이가 재시도
"""

import logging

import pandas as pd
import yfinance as yf
from yfinance.exceptions import YFRateLimitError

from auto_trader.core.data_provider import BarBackend, PriceBar, bars_from_dataframe
from auto_trader.core.errors import RateLimitedError

logger = logging.getLogger("auto_trader.yahoo")

INTERVALS = {
    "1": "1m",
    "5": "5m",
    "15": "15m",
    "30": "30m",
    "60": "60m",
    "day": "1d",
}
RESAMPLED = {"3": ("1m", "3min")}
MARKET_SUFFIXES = (".KS", ".KQ")


class YahooBarBackend(BarBackend):
    """yfinance 기반 분봉 조회."""

    def __init__(self, intraday_period: str = "5d", daily_period: str = "6mo"):
        self.intraday_period = intraday_period
        self.daily_period = daily_period

    def fetch_bars(self, code: str, granularity: str) -> list[PriceBar]:
        granularity = str(granularity).strip().lower()
        resample_rule = None
        if granularity in RESAMPLED:
            interval, resample_rule = RESAMPLED[granularity]
        elif granularity in INTERVALS:
            interval = INTERVALS[granularity]
        else:
            raise ValueError(f"지원하지 않는 봉 단위: {granularity}")
        period = self.daily_period if interval == "1d" else self.intraday_period

        df = pd.DataFrame()
        for suffix in MARKET_SUFFIXES:
            df = self._history(f"{code}{suffix}", interval, period)
            if not df.empty:
                break
        if df.empty:
            logger.warning(f"[{code}] Yahoo 분봉 없음 ({interval})")
            return []

        df = df.rename(columns=str.lower)[["open", "high", "low", "close", "volume"]]
        if resample_rule:
            df = df.resample(resample_rule, label="left", closed="left").agg({
                "open": "first",
                "high": "max",
                "low": "min",
                "close": "last",
                "volume": "sum",
            })
        df = df.dropna(subset=["open", "high", "low", "close"])
        df.index.name = "timestamp"
        return bars_from_dataframe(df)

    @staticmethod
    def _history(symbol: str, interval: str, period: str) -> pd.DataFrame:
        try:
            return yf.Ticker(symbol).history(
                period=period,
                interval=interval,
                auto_adjust=False,
                actions=False,
            )
        except YFRateLimitError as e:
            raise RateLimitedError(f"Yahoo 요청 제한: {symbol}") from e
