"""
시세 데이터 타입 및 데이터 제공 추상 클래스 정의.

[ 역할 ]
    분봉(PriceBar), 실시간 시세(Quote) 타입과
    분봉 조회(BarBackend) / 실시간 시세 수신(QuoteStream) 인터페이스 정의.
    데이터 소스(증권사 REST, Yahoo, Mock 등)에 독립적으로 엔진에 데이터 공급.

[ 구현체 ]
    - brokers/mock_broker.py::MockBarBackend, MockQuoteStream (테스트/드라이런)
    - brokers/yahoo_backend.py::YahooBarBackend (Yahoo Finance 분봉)

[ 호출하는 곳 ]
    - data/market_data.py::MarketDataGateway가 BarBackend를 감싸서 사용
    - engine/scheduler.py::ExecutionScheduler.consume_quotes()가 QuoteStream 소비

[ 정렬 규칙 ]
    분봉 시퀀스는 항상 최신 봉이 앞(index 0)에 온다 (newest-first).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator

import pandas as pd


@dataclass(frozen=True)
class PriceBar:
    """단일 봉(캔들). 조회 후 변경되지 않는다."""
    timestamp: datetime
    open: float      # 시가
    high: float      # 고가
    low: float       # 저가
    close: float     # 종가
    volume: float    # 거래량


@dataclass(frozen=True)
class Quote:
    """실시간 체결 시세 한 건. 후보/보유 종목의 시세 필드에 병합된다."""
    code: str
    price: float
    change_abs: float = 0.0    # 전일대비
    change_pct: float = 0.0    # 등락률 (%)
    volume: float = 0.0        # 누적 거래량
    name: str = ""


def bars_from_dataframe(df: pd.DataFrame) -> list[PriceBar]:
    """OHLCV DataFrame을 newest-first PriceBar 리스트로 변환.

    DataFrame은 시간 오름차순/내림차순 어느 쪽이든 상관없다.
    """
    if df.empty:
        return []
    frame = df.rename(columns=str.lower)
    if "timestamp" not in frame.columns:
        frame = frame.reset_index().rename(columns={frame.index.name or "index": "timestamp"})
        frame = frame.rename(columns=str.lower)
    frame = frame.sort_values("timestamp", ascending=False)
    return [
        PriceBar(
            timestamp=pd.Timestamp(row.timestamp).to_pydatetime(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in frame.itertuples(index=False)
    ]


class BarBackend(ABC):
    """분봉 조회 추상 클래스.

    요청 제한 응답은 반드시 RateLimitedError로 구분해서 던져야 한다.
    그 외 실패는 일반 예외로 던지면 게이트웨이가 재시도한다.
    """

    @abstractmethod
    def fetch_bars(self, code: str, granularity: str) -> list[PriceBar]:
        """분봉 조회.

        Args:
            code: 6자리 종목코드
            granularity: 봉 단위 ("1", "3", "5" 분 또는 "day")

        Returns:
            newest-first PriceBar 리스트
        """
        ...


class QuoteStream(ABC):
    """실시간 시세 수신 추상 클래스 (웹소켓 등)."""

    @abstractmethod
    def quotes(self) -> AsyncIterator[Quote]:
        """Quote를 계속 내보내는 비동기 이터레이터."""
        ...
