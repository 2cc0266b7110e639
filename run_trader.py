"""
자동매매 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 기본 실행 (config.yaml 사용, 샘플 분봉 + 모의 주문)
    python run_trader.py

    # Yahoo Finance 분봉 사용
    python run_trader.py --source yahoo

    # 틱 한 번만 실행하고 결과 출력
    python run_trader.py --once

    # 설정 파일 지정
    python run_trader.py --config my_config.yaml

    # 등록된 전략 목록 / 기본 설정 파일 생성
    python run_trader.py --list
    python run_trader.py --init-config config.yaml

[ 주의 ]
    증권사 주문 연동 구현체는 포함되어 있지 않다. 주문은 MockOrderGateway로
    기록만 되며, 실제 주문을 내려면 core/broker_api.py의 추상 클래스를 구현해서
    build_scheduler()에 주입한다.
"""

import argparse
import asyncio
import logging
from dataclasses import asdict
from pathlib import Path

from auto_trader.brokers.mock_broker import (
    InMemoryCounterStore,
    MockAccountService,
    MockBarBackend,
    MockConditionSearch,
    MockOrderGateway,
    MockQuoteStream,
    random_walk_quotes,
    sample_bars_for,
    sample_universe,
)
from auto_trader.brokers.yahoo_backend import YahooBarBackend
from auto_trader.core.data_provider import BarBackend
from auto_trader.data.counters import JsonCounterStore
from auto_trader.engine.scheduler import ExecutionScheduler, TickReport
from auto_trader.strategies import create_strategy, list_strategies
from auto_trader.utils.config import Config
from auto_trader.utils.logger import setup_logger
from auto_trader.utils.notifier import TelegramNotifier

SAMPLE_ACCOUNT = "MOCK-0000"


def build_scheduler(config: Config, source: str, persist: bool = True) -> ExecutionScheduler:
    """설정과 데이터 소스로 스케줄러 조립."""
    universe = sample_universe()
    backend: BarBackend
    if source == "yahoo":
        backend = YahooBarBackend()
    else:
        backend = MockBarBackend(sample_bars_for(universe))

    if not config.trading.account_ref:
        config.trading.account_ref = SAMPLE_ACCOUNT

    store = JsonCounterStore(config.counters_path) if persist else InMemoryCounterStore()
    return ExecutionScheduler(
        config,
        search=MockConditionSearch(universe, label="sample"),
        bar_backend=backend,
        orders=MockOrderGateway(),
        counter_store=store,
        notifier=TelegramNotifier(config.notifier),
        account=MockAccountService(),
    )


def print_report(report: TickReport, scheduler: ExecutionScheduler) -> None:
    print("\n" + "=" * 60)
    print(f"  틱 결과 ({report.started_at:%Y-%m-%d %H:%M:%S})")
    print("=" * 60)
    print(f"  조건검색:       {'성공' if report.search_ok else '실패'}")
    print(f"  주문 단계:      {'중단' if report.aborted else '실행'}")
    print(f"  매수:           {', '.join(report.buys) or '-'}")
    for code, reason in report.sells:
        print(f"  매도:           {code} ({reason.value})")
    for code, reason in report.skipped.items():
        print(f"  건너뜀:         {code} - {reason}")
    print("-" * 60)
    print(f"  보유 종목:      {scheduler.book.holding_count()}개")
    for h in scheduler.book.holdings():
        print(f"    {h.code} {h.name:<12} {h.quantity:>6}주  평단 {h.avg_cost:>10,.0f}  수익률 {h.profit_pct:+.2f}%")
    print(f"  당일 매매 종목: {scheduler.counters.daily_count}개")
    print("=" * 60)


async def run_forever(scheduler: ExecutionScheduler, source: str) -> None:
    stream = None
    if source != "yahoo":
        stream = MockQuoteStream(random_walk_quotes(sample_universe()), delay=1.0)
    await scheduler.run(stream)


def main():
    parser = argparse.ArgumentParser(description="주식 자동매매 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로 (.yaml/.json)")
    parser.add_argument("--source", type=str, default="sample", choices=["sample", "yahoo"], help="분봉 데이터 소스")
    parser.add_argument("--sample", action="store_true", help="샘플 데이터로 실행 (--source sample)")
    parser.add_argument("--once", action="store_true", help="틱 한 번만 실행")
    parser.add_argument("--list", action="store_true", help="등록된 전략 목록 출력")
    parser.add_argument("--init-config", type=str, metavar="PATH", help="기본 설정 파일 생성")
    args = parser.parse_args()

    # 전략 목록 출력
    if args.list:
        print("등록된 전략:")
        for name in list_strategies():
            params = create_strategy(name).build_params()
            state = "on" if params.enabled else "off"
            print(f"  - {name:<20} [{state}] {params.start_time}~{params.end_time}")
        return

    if args.init_config:
        config = Config()
        config.strategies = {name: asdict(create_strategy(name).build_params()) for name in list_strategies()}
        config.save_yaml(args.init_config)
        print(f"기본 설정 저장: {args.init_config}")
        return

    # 설정 로드
    config_path = Path(args.config)
    if config_path.exists():
        loader = Config.from_json if config_path.suffix == ".json" else Config.from_yaml
        config = loader(config_path)
    else:
        print(f"설정 파일 없음: {config_path}, 기본값 사용")
        config = Config()

    # 로거
    logger = setup_logger(level=config.log_level, log_dir=config.log_dir)

    if args.sample:
        args.source = "sample"

    scheduler = build_scheduler(config, args.source, persist=not args.once)
    logger.info(f"활성 전략: {', '.join(scheduler.evaluator.enabled_strategies())}")

    if args.once:
        report = asyncio.run(scheduler.tick())
        print_report(report, scheduler)
        return

    try:
        asyncio.run(run_forever(scheduler, args.source))
    except KeyboardInterrupt:
        logging.getLogger("auto_trader").info("사용자 중단")


if __name__ == "__main__":
    main()
