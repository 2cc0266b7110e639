"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    매매조건, 매도(리스크) 조건, 분봉 조회, 스케줄러, 전략 파라미터,
    알림, 로깅 설정 등을 통합 관리. 평가 중에는 읽기 전용으로만 사용.

[ 설정 파일 구조 (config.yaml) ]
    trading:      → TradingConfig (종목당 매수금액, 한도, 수수료, 매매시간)
    risk:         → RiskConfig (익절/손절/트레일링/시간청산)
    market_data:  → MarketDataConfig (분봉 단위, 배치, 재시도, 검색 후 대기)
    scheduler:    → SchedulerConfig (틱 간격)
    strategies:   → 전략 이름별 파라미터 dict (각 전략의 Params 데이터클래스로 변환)
    notifier:     → NotifierConfig (텔레그램)
    counters_path / log_level / log_dir

[ 호출하는 곳 ]
    - run_trader.py에서 Config.from_yaml()로 로드
    - engine/evaluator.py에서 config.strategies로 전략 파라미터 생성
    - engine/scheduler.py / engine/risk.py에서 각 섹션 사용
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import time
from pathlib import Path
from typing import Any

import yaml


def parse_clock(value: "str | time") -> time:
    """"HH:MM[:SS]" 문자열을 time으로 변환."""
    if isinstance(value, time):
        return value
    parts = [int(p) for p in str(value).strip().split(":")]
    while len(parts) < 3:
        parts.append(0)
    return time(parts[0], parts[1], parts[2])


def in_window(now: time, start: "str | time", end: "str | time") -> bool:
    """start <= now <= end (양 끝 포함)."""
    return parse_clock(start) <= now <= parse_clock(end)


@dataclass
class TradingConfig:
    """매매조건. config.yaml의 trading 섹션에 대응."""
    amount_per_stock: float = 5_000_000     # 종목당 매수금액
    max_positions: int = 10                 # 최대 동시 보유 종목 수
    max_trades_per_stock: int = 30          # 종목당 매매 허용 횟수
    max_daily_stocks: int = 50              # 당일 최대 매매 종목 수
    fee_rate: float = 0.0092                # 수수료 및 세금 (0.92%)
    buy_price_mode: str = "limit"           # "market" | "limit"
    buy_price_offset: float = 0.0           # 지정가 매수 시 현재가에 더할 금액
    start_time: str = "09:00:00"            # 매수 허용 시작
    end_time: str = "15:19:59"              # 매수 허용 종료
    account_ref: str = ""                   # 계좌 식별자 (없으면 주문 단계 중단)
    condition_ids: list[str] = field(default_factory=list)
    excluded_name_patterns: list[str] = field(
        default_factory=lambda: ["레버리지", "인버스", "2X", "곱버스", "선물"]
    )


@dataclass
class RiskConfig:
    """매도 조건. config.yaml의 risk 섹션에 대응."""
    take_profit_enabled: bool = True
    take_profit_pct: float = 10.0           # 익절 목표 수익률 (%)
    take_profit_price_mode: str = "market"
    stop_loss_enabled: bool = True
    stop_loss_pct: float = -1.5             # 손절 기준 손실률 (%, 음수)
    stop_loss_price_mode: str = "limit"
    sell_price_offset: float = 0.0          # 지정가 매도 시 현재가에 더할 금액
    trailing_enabled: bool = True
    trailing_activation_pct: float = 10.0   # 매도 감시 기준 수익률 (%)
    trailing_drop_pct: float = 3.0          # 최고 수익률 대비 하락률 (%p)
    trailing_price_mode: str = "market"
    liquidation_enabled: bool = True        # 목표 시간 도달 시 보유 종목 전량 매도
    liquidation_time: str = "15:19:59"


@dataclass
class MarketDataConfig:
    """분봉 조회 설정. config.yaml의 market_data 섹션에 대응."""
    granularity: str = "5"                  # 분봉 단위
    batch_size: int = 3                     # 한 번에 조회할 종목 수
    batch_delay: float = 1.0                # 배치 사이 대기 (초)
    max_retries: int = 3
    retry_base_delay: float = 1.0           # 재시도 대기 = base * 시도횟수
    search_cooldown: float = 30.0           # 조건검색 직후 분봉 조회 중단 시간 (초)


@dataclass
class SchedulerConfig:
    """스케줄러 설정. config.yaml의 scheduler 섹션에 대응."""
    interval_sec: float = 30.0


@dataclass
class NotifierConfig:
    """텔레그램 알림 설정."""
    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""


def _pick(cls, data: dict[str, Any] | None):
    """데이터클래스 필드에 해당하는 키만 골라 인스턴스 생성."""
    data = data or {}
    return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    trading: TradingConfig = field(default_factory=TradingConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    market_data: MarketDataConfig = field(default_factory=MarketDataConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    strategies: dict[str, dict[str, Any]] = field(default_factory=dict)
    notifier: NotifierConfig = field(default_factory=NotifierConfig)
    counters_path: str = "data/trade_counters.json"
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성. 모르는 키는 무시."""
        trading = _pick(TradingConfig, data.get("trading"))
        trading.condition_ids = [str(c) for c in trading.condition_ids]

        strategies = {
            str(name): dict(params or {})
            for name, params in (data.get("strategies") or {}).items()
        }

        return cls(
            trading=trading,
            risk=_pick(RiskConfig, data.get("risk")),
            market_data=_pick(MarketDataConfig, data.get("market_data")),
            scheduler=_pick(SchedulerConfig, data.get("scheduler")),
            strategies=strategies,
            notifier=_pick(NotifierConfig, data.get("notifier")),
            counters_path=data.get("counters_path", "data/trade_counters.json"),
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)
