"""
매매 횟수 카운터 모듈.

[ 역할 ]
    종목별 매매 횟수, 당일 매매한 종목 집합/수를 관리하고
    날짜가 바뀌면 초기화. CounterStore를 통해 읽기/쓰기.

[ 주요 클래스 ]
    TradeCounters   - 카운터 상태 (매수 주문 성공 시에만 증가)
    JsonCounterStore - JSON 파일 기반 CounterStore 구현

[ 호출하는 곳 ]
    - engine/risk.py::TradeGate: 매수 전 한도 확인
    - engine/scheduler.py: 매수 성공 시 record_trade(), 틱마다 roll_date() / 저장
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Optional

from auto_trader.core.broker_api import CounterStore

logger = logging.getLogger("auto_trader.counters")


@dataclass
class TradeCounters:
    per_stock: dict[str, int] = field(default_factory=dict)   # code → 당일 매매 횟수
    daily_codes: set[str] = field(default_factory=set)        # 당일 매매한 종목
    last_reset_date: Optional[date] = None

    @property
    def daily_count(self) -> int:
        """당일 매매한 서로 다른 종목 수."""
        return len(self.daily_codes)

    def trades_for(self, code: str) -> int:
        return self.per_stock.get(code, 0)

    def record_trade(self, code: str) -> None:
        """주문 성공 1건 반영."""
        self.per_stock[code] = self.per_stock.get(code, 0) + 1
        self.daily_codes.add(code)

    def roll_date(self, today: date) -> bool:
        """날짜가 바뀌었으면 초기화하고 True."""
        if self.last_reset_date == today:
            return False
        self.per_stock.clear()
        self.daily_codes.clear()
        self.last_reset_date = today
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "per_stock_trade_count": dict(self.per_stock),
            "daily_traded_codes": sorted(self.daily_codes),
            "daily_trade_count": self.daily_count,
            "last_reset_date": self.last_reset_date.isoformat() if self.last_reset_date else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "TradeCounters":
        if not data:
            return cls()
        last = data.get("last_reset_date")
        return cls(
            per_stock={str(k): int(v) for k, v in (data.get("per_stock_trade_count") or {}).items()},
            daily_codes=set(data.get("daily_traded_codes") or []),
            last_reset_date=date.fromisoformat(last) if last else None,
        )


class JsonCounterStore(CounterStore):
    """JSON 파일 카운터 저장소."""

    def __init__(self, path: str | Path = "data/trade_counters.json"):
        self.path = Path(path)

    def load(self) -> Optional[dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"카운터 파일 읽기 실패, 새로 시작: {self.path} ({e})")
            return None

    def save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
