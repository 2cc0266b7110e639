"""
후보/보유 종목 관리 모듈.

[ 역할 ]
    조건검색으로 잡힌 후보 종목(Candidate)과 보유 종목(HoldingPosition)을
    종목코드 키 맵으로 통합 관리. 스케줄러 틱과 실시간 시세 스트림이
    동시에 갱신하므로 모든 변경은 하나의 락 안에서 종목 단위로 수행한다.

[ 주요 클래스 ]
    Candidate       - 후보 종목. 최초 포착 시점의 기준가/등락률은 한 번만 기록
    HoldingPosition - 보유 종목. 최고 수익률(max_profit_pct)은 감소하지 않음
    TradingBook     - 후보/보유 맵 + 락

[ 호출하는 곳 ]
    - engine/scheduler.py: 조건검색 병합, 매수 체결 시 open_position(), 매도 체결 시 close_position()
    - engine/scheduler.py::consume_quotes(): apply_quote()로 실시간 시세 병합
"""

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, Optional

from auto_trader.core.broker_api import SearchStock
from auto_trader.core.data_provider import Quote


@dataclass
class Candidate:
    """매수 후보 종목."""
    code: str
    name: str = ""
    price: float = 0.0
    change_abs: float = 0.0
    change_pct: float = 0.0
    volume: float = 0.0
    condition_label: str = ""
    detected_at: Optional[datetime] = None
    baseline_price: float = 0.0            # 포착 시점 가격 (이후 갱신 안 함)
    change_pct_at_detection: float = 0.0   # 포착 시점 등락률 (이후 갱신 안 함)

    def relative_move_pct(self) -> float:
        """포착 이후 가격 변화율 (%)."""
        if self.baseline_price <= 0:
            return 0.0
        return (self.price - self.baseline_price) / self.baseline_price * 100

    def drift_since_detection(self) -> float:
        """포착 이후 등락률 변화 (%p)."""
        return self.change_pct - self.change_pct_at_detection


@dataclass
class HoldingPosition:
    """보유 종목. 가격이 갱신될 때마다 수익률/최고 수익률 재계산."""
    code: str
    name: str = ""
    quantity: int = 0
    avg_cost: float = 0.0
    current_price: float = 0.0
    profit_pct: float = 0.0
    max_profit_pct: float = 0.0

    def update_price(self, price: float) -> None:
        if price <= 0:
            return
        self.current_price = price
        if self.avg_cost > 0:
            self.profit_pct = (price - self.avg_cost) / self.avg_cost * 100
        self.max_profit_pct = max(self.max_profit_pct, self.profit_pct)


class TradingBook:
    """후보/보유 종목 공유 맵.

    스케줄러(asyncio 태스크)와 시세 스트림(태스크 또는 콜백 스레드)이
    함께 쓰므로 RLock 하나로 전체 맵을 보호한다. 읽기는 항상 복사본을 돌려준다.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._candidates: dict[str, Candidate] = {}       # code → Candidate
        self._holdings: dict[str, HoldingPosition] = {}   # code → HoldingPosition

    # ─── 후보 종목 ──────────────────────────────────────────────────────────

    def merge_search_results(
        self,
        stocks: Iterable[SearchStock],
        condition_label: str,
        detected_at: datetime,
        prune: bool = True,
    ) -> list[str]:
        """조건검색 결과 병합. 새로 포착된 종목코드 목록 반환.

        이미 아는 종목은 시세 필드만 갱신하고 기준가/포착 등락률은 유지.
        prune=True이면 결과에 없는 후보는 제거한다.
        """
        added: list[str] = []
        with self._lock:
            seen: set[str] = set()
            for stock in stocks:
                code = str(stock.code).strip()
                if not code:
                    continue
                seen.add(code)
                existing = self._candidates.get(code)
                if existing is None:
                    self._candidates[code] = Candidate(
                        code=code,
                        name=stock.name,
                        price=stock.price,
                        change_abs=stock.change_abs,
                        change_pct=stock.change_rate,
                        volume=stock.volume,
                        condition_label=condition_label,
                        detected_at=detected_at,
                        baseline_price=stock.price,
                        change_pct_at_detection=stock.change_rate,
                    )
                    added.append(code)
                    continue
                existing.name = stock.name or existing.name
                if stock.price > 0:
                    existing.price = stock.price
                existing.change_abs = stock.change_abs
                existing.change_pct = stock.change_rate
                existing.volume = stock.volume
            if prune:
                for code in [c for c in self._candidates if c not in seen]:
                    del self._candidates[code]
        return added

    def get_candidate(self, code: str) -> Optional[Candidate]:
        with self._lock:
            candidate = self._candidates.get(code)
            return replace(candidate) if candidate else None

    def candidates(self) -> list[Candidate]:
        with self._lock:
            return [replace(c) for c in self._candidates.values()]

    def clear_candidates(self) -> None:
        with self._lock:
            self._candidates.clear()

    # ─── 보유 종목 ──────────────────────────────────────────────────────────

    def open_position(self, code: str, name: str, quantity: int, price: float) -> HoldingPosition:
        """매수 체결 반영. 이미 보유 중이면 가중평균 단가로 합산."""
        with self._lock:
            holding = self._holdings.get(code)
            if holding is None:
                holding = HoldingPosition(code=code, name=name, quantity=quantity, avg_cost=price)
                self._holdings[code] = holding
            else:
                total_qty = holding.quantity + quantity
                holding.avg_cost = (holding.avg_cost * holding.quantity + price * quantity) / total_qty
                holding.quantity = total_qty
            holding.update_price(price)
            return replace(holding)

    def close_position(self, code: str) -> Optional[HoldingPosition]:
        """전량 매도 체결 반영."""
        with self._lock:
            return self._holdings.pop(code, None)

    def is_held(self, code: str) -> bool:
        with self._lock:
            return code in self._holdings

    def holding_count(self) -> int:
        with self._lock:
            return len(self._holdings)

    def holdings(self) -> list[HoldingPosition]:
        with self._lock:
            return [replace(h) for h in self._holdings.values()]

    def raise_peak(self, code: str, max_profit_pct: float) -> None:
        """리스크 평가에서 갱신한 최고 수익률 반영 (감소는 무시)."""
        with self._lock:
            holding = self._holdings.get(code)
            if holding is not None:
                holding.max_profit_pct = max(holding.max_profit_pct, max_profit_pct)

    def load_holdings(self, holdings: Iterable[HoldingPosition]) -> None:
        """계좌 잔고로 보유 종목 초기화 (엔진 시작 시)."""
        with self._lock:
            self._holdings = {h.code: replace(h) for h in holdings}

    # ─── 실시간 시세 ────────────────────────────────────────────────────────

    def apply_quote(self, quote: Quote) -> None:
        """실시간 시세 병합. 시세 필드만 바꾸고 포착 기준 필드는 건드리지 않는다."""
        if quote.price <= 0:
            return
        with self._lock:
            candidate = self._candidates.get(quote.code)
            if candidate is not None:
                candidate.price = quote.price
                candidate.change_abs = quote.change_abs
                candidate.change_pct = quote.change_pct
                candidate.volume = quote.volume
                if quote.name:
                    candidate.name = quote.name
            holding = self._holdings.get(quote.code)
            if holding is not None:
                holding.update_price(quote.price)
