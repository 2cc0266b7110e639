"""
=============================================================================
조건검색 기반 주식 자동매매 엔진 (Auto Trader)
=============================================================================

[ 시스템 전체 구조 ]

    run_trader.py (진입점)
         │
         ├── utils/config.py        ← config.yaml 설정 로드
         ├── utils/logger.py        ← 로깅 (메인 로그 + 주문 로그)
         ├── utils/notifier.py      ← 텔레그램 알림
         │
         └── engine/scheduler.py    ← 주기 실행 제어 루프 (ExecutionScheduler)
               │
               ├── data/portfolio.py      ← 후보/보유 종목 (TradingBook)
               ├── data/counters.py       ← 매매 횟수 카운터 + JSON 저장
               ├── data/market_data.py    ← 분봉 조회 (배치/재시도/검색 후 대기)
               ├── engine/evaluator.py    ← 전략 통합 매수 판단
               │     └── strategies/      ← 매수 전략 (@register 등록)
               │           └── analysis/indicators.py  ← RSI/이동평균/볼린저/호가단위
               └── engine/risk.py         ← 매도 판단, 매수 한도, 주문 수량


[ 핵심 추상 클래스 (core/) - 모든 구현체의 부모 ]

    core/broker_api.py       → brokers/mock_broker.py (주문/조건검색/카운터 저장소 Mock)
                             → 실제 증권사 연동 시 OrderGateway 등을 구현

    core/data_provider.py    → brokers/mock_broker.py::MockBarBackend, MockQuoteStream
                             → brokers/yahoo_backend.py::YahooBarBackend

    core/trading_strategy.py → strategies/*.py (매수 전략 6종)


[ 틱 흐름 ]

    1. 날짜가 바뀌었으면 매매 카운터 초기화
    2. 조건검색 → 후보 종목 병합 (포착 시점 기준가는 유지)
    3. 매수: 후보 종목 배치 조회 → 전략 평가 → 수량 계산 → 주문
    4. 매도: 보유 종목별 트레일링/익절/손절/시간청산 판단 → 주문
    5. 카운터 저장

    실시간 시세 스트림은 별도 태스크에서 TradingBook에 가격을 병합한다.
"""
