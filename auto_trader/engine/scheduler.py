"""
자동매매 실행 스케줄러 모듈.

[ 역할 ]
    일정 간격으로 tick()을 반복 실행하는 시스템의 핵심 제어 루프.
    후보/보유 종목(TradingBook), 전략 평가기, 리스크 관리자, 매매 카운터를 소유한다.

[ 실행 흐름 ]
    tick() 호출 시:
        1. 날짜가 바뀌었으면 매매 카운터 초기화
        2. 조건검색 → 후보 종목 병합 (기존 종목의 포착 기준값은 유지)
        3. 매수 단계 (매매 시간 안에서만)
           → 보유 중 / 레버리지·인버스 / 한도 초과 종목 제외
           → 배치 단위 분봉 조회 → StrategyEvaluator.evaluate()
           → 매수 신호면 수량 계산 후 주문, 성공 시 카운터 증가 + 보유 등록
        4. 매도 단계: 보유 종목마다 PositionRiskManager.evaluate() → 매도 주문
        5. 매매 카운터 저장

    run()은 시작할 때 계좌 잔고로 보유 종목을 채운 뒤(sync_holdings) stop()이
    불릴 때까지 tick()을 반복하고, 실시간 시세 스트림을 별도 태스크로 돌려
    TradingBook에 병합한다.

[ 오류 처리 ]
    - 종목 하나의 평가/주문 오류는 로그만 남기고 다음 종목 계속
    - 계좌 정보 누락(ConfigurationError)은 해당 틱의 주문 단계만 중단
    - 모의투자 환경 제한(EnvironmentRestrictedError)은 스킵으로 기록

[ 호출하는 곳 ]
    - run_trader.py (진입점)에서 생성 및 실행
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from auto_trader.core.broker_api import (
    AccountService,
    ConditionSearchService,
    CounterStore,
    Order,
    OrderGateway,
    OrderSide,
    PriceMode,
    validate_stock_code,
)
from auto_trader.core.data_provider import BarBackend, PriceBar, QuoteStream
from auto_trader.core.errors import (
    ConfigurationError,
    EnvironmentRestrictedError,
    RateLimitedError,
    ValidationError,
)
from auto_trader.core.trading_strategy import current_price
from auto_trader.data.counters import TradeCounters
from auto_trader.data.market_data import MarketDataGateway
from auto_trader.data.portfolio import Candidate, HoldingPosition, TradingBook
from auto_trader.engine.evaluator import StrategyEvaluator
from auto_trader.engine.risk import (
    PositionRiskManager,
    SellReason,
    TradeGate,
    order_price,
    order_quantity,
)
from auto_trader.utils.config import Config, in_window
from auto_trader.utils.logger import ORDER_LOGGER_NAME
from auto_trader.utils.notifier import TelegramNotifier

logger = logging.getLogger("auto_trader.scheduler")
order_logger = logging.getLogger(ORDER_LOGGER_NAME)

MAX_STREAM_BACKOFF = 30.0


@dataclass
class TickReport:
    """tick() 한 번의 결과 요약."""
    started_at: datetime
    search_ok: bool = False
    buys: list[str] = field(default_factory=list)
    sells: list[tuple[str, SellReason]] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)   # code → 스킵 사유
    aborted: bool = False                                    # 주문 단계 중단 여부


class ExecutionScheduler:
    """자동매매 제어 루프.

    사용 예:
        scheduler = ExecutionScheduler(config, search, backend, orders, store)
        await scheduler.run(quote_stream)   # 다른 태스크에서 scheduler.stop()
    """

    def __init__(
        self,
        config: Config,
        search: ConditionSearchService,
        bar_backend: BarBackend,
        orders: OrderGateway,
        counter_store: CounterStore,
        book: Optional[TradingBook] = None,
        notifier: Optional[TelegramNotifier] = None,
        account: Optional[AccountService] = None,
        now: Callable[[], datetime] = datetime.now,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.search = search
        self.orders = orders
        self.counter_store = counter_store
        self.book = book or TradingBook()
        self.notifier = notifier
        self.account = account
        self._now = now
        self._clock = clock
        self._sleep = sleep

        self.evaluator = StrategyEvaluator(config.strategies)
        self.risk = PositionRiskManager(config.risk)
        self.gateway = MarketDataGateway(
            bar_backend,
            config.market_data,
            required_bars=self.evaluator.required_bars,
            clock=clock,
            sleep=sleep,
        )
        self.counters = TradeCounters.from_dict(counter_store.load())
        self.gate = TradeGate(config.trading, self.counters)

        self.running = False
        self._stop_requested = False
        self._fresh_search = False

    # ─── 외부 제어 ─────────────────────────────────────────────────────────

    def stop(self) -> None:
        """진행 중인 배치까지만 처리하고 더 이상 틱을 시작하지 않는다."""
        self._stop_requested = True

    def request_fresh_search(self) -> None:
        """다음 틱의 조건검색을 대량 검색으로 취급 (검색 직후 분봉 조회 대기 적용)."""
        self._fresh_search = True

    async def run(self, quote_stream: Optional[QuoteStream] = None) -> None:
        """stop()이 불릴 때까지 interval_sec 간격으로 tick() 반복."""
        self.running = True
        self._stop_requested = False
        self._fresh_search = True
        interval = float(self.config.scheduler.interval_sec)
        quote_task = asyncio.create_task(self.consume_quotes(quote_stream)) if quote_stream else None
        logger.info(f"자동매매 시작 (틱 간격 {interval:.0f}초)")

        try:
            await self.sync_holdings()
            while not self._stop_requested:
                started = self._clock()
                try:
                    await self.tick()
                except Exception:
                    logger.exception("틱 처리 중 오류")
                if self._stop_requested:
                    break
                await self._sleep(max(0.0, interval - (self._clock() - started)))
        finally:
            self.running = False
            if quote_task is not None:
                quote_task.cancel()
                await asyncio.gather(quote_task, return_exceptions=True)
            self.book.clear_candidates()
            self._persist_counters()
            logger.info("자동매매 종료")

    async def sync_holdings(self) -> bool:
        """계좌 잔고로 보유 종목 초기화. 실패하면 기존 보유 종목 유지."""
        if self.account is None:
            return False
        try:
            account_ref = self._require_account()
            items = await asyncio.to_thread(self.account.balance, account_ref)
        except Exception as e:
            logger.warning(f"잔고 조회 실패, 기존 보유 종목 유지: {e}")
            return False

        holdings = []
        for item in items:
            if item.quantity <= 0:
                continue
            holding = HoldingPosition(code=item.code, name=item.name, quantity=item.quantity, avg_cost=item.avg_cost)
            holding.update_price(item.price or item.avg_cost)
            holdings.append(holding)
        self.book.load_holdings(holdings)
        logger.info(f"잔고 동기화: 보유 {len(holdings)}종목")
        return True

    async def consume_quotes(self, stream: QuoteStream) -> None:
        """실시간 시세를 TradingBook에 병합. 스트림 오류 시 재연결."""
        backoff = 1.0
        while True:
            try:
                async for quote in stream.quotes():
                    self.book.apply_quote(quote)
                    backoff = 1.0
                return
            except Exception as e:
                logger.warning(f"시세 스트림 오류, {backoff:.0f}초 후 재연결: {e}")
                await self._sleep(backoff)
                backoff = min(backoff * 2, MAX_STREAM_BACKOFF)

    # ─── 틱 ────────────────────────────────────────────────────────────────

    async def tick(self) -> TickReport:
        now = self._now()
        report = TickReport(started_at=now)

        if self.counters.roll_date(now.date()):
            logger.info(f"날짜 변경 ({now.date()}), 매매 카운터 초기화")

        fresh = self._fresh_search
        self._fresh_search = False
        report.search_ok = await self.refresh_candidates(now, fresh=fresh)

        try:
            account_ref = self._require_account()
        except ConfigurationError as e:
            logger.error(f"주문 단계 중단: {e}")
            report.aborted = True
        else:
            await self._buy_phase(now, account_ref, report)
            await self._sell_phase(now, account_ref, report)

        self._persist_counters()
        return report

    async def refresh_candidates(self, now: datetime, fresh: bool = False) -> bool:
        """조건검색 결과를 후보 종목에 병합. 실패하면 기존 후보 유지."""
        condition_ids = list(self.config.trading.condition_ids)
        try:
            result = await asyncio.to_thread(self.search.search, condition_ids)
        except Exception as e:
            logger.warning(f"조건검색 실패, 기존 후보 유지: {e}")
            return False
        if not result.success:
            logger.warning("조건검색 실패 응답, 기존 후보 유지")
            return False

        label = ", ".join(result.applied_conditions)
        added = self.book.merge_search_results(result.stocks, label, now)
        if added:
            logger.info(f"신규 포착 {len(added)}종목: {', '.join(added)}")
        if fresh:
            self.gateway.mark_search()
        return True

    def _require_account(self) -> str:
        account_ref = str(self.config.trading.account_ref or "").strip()
        if not account_ref:
            raise ConfigurationError("계좌 정보(account_ref)가 설정되지 않았습니다")
        return account_ref

    # ─── 매수 ──────────────────────────────────────────────────────────────

    def _is_excluded(self, candidate: Candidate) -> bool:
        name = candidate.name.lower()
        return any(p.lower() in name for p in self.config.trading.excluded_name_patterns if p)

    def _buy_blocker(self, candidate: Candidate) -> Optional[str]:
        """매수 대상에서 빼야 하면 사유, 아니면 None."""
        if self.book.is_held(candidate.code):
            return "보유 중"
        try:
            validate_stock_code(candidate.code)
        except ValidationError as e:
            return str(e)
        if self._is_excluded(candidate):
            return "제외 종목 (레버리지/인버스)"
        ok, reason = self.gate.can_buy(candidate.code, self.book.holding_count())
        if not ok:
            return reason
        return None

    async def _buy_phase(self, now: datetime, account_ref: str, report: TickReport) -> None:
        trading = self.config.trading
        if not in_window(now.time(), trading.start_time, trading.end_time):
            logger.debug(f"매매 시간 밖 ({trading.start_time}~{trading.end_time}), 매수 생략")
            return

        codes: list[str] = []
        for candidate in self.book.candidates():
            blocker = self._buy_blocker(candidate)
            if blocker:
                report.skipped[candidate.code] = blocker
                continue
            codes.append(candidate.code)
        if not codes:
            return

        async for batch, bars_by_code in self.gateway.iter_batches(codes):
            for code in batch:
                try:
                    await self._try_buy(code, bars_by_code.get(code, []), now, account_ref, report)
                except Exception:
                    logger.exception(f"[{code}] 매수 처리 중 오류")
            if self._stop_requested:
                logger.info("중지 요청, 남은 배치 생략")
                break

    async def _try_buy(
        self,
        code: str,
        bars: list[PriceBar],
        now: datetime,
        account_ref: str,
        report: TickReport,
    ) -> None:
        candidate = self.book.get_candidate(code)
        if candidate is None:
            return
        # 같은 틱 안에서 앞선 매수로 한도가 찼을 수 있으므로 다시 확인
        blocker = self._buy_blocker(candidate)
        if blocker:
            report.skipped[code] = blocker
            return

        decision = self.evaluator.evaluate(candidate, bars, now.time())
        if not decision.buy:
            return

        trading = self.config.trading
        price = current_price(candidate, bars)
        quantity = order_quantity(trading.amount_per_stock, trading.fee_rate, price)
        if quantity <= 0:
            report.skipped[code] = f"매수 수량 0 (가격 {price:,.0f})"
            return

        mode = PriceMode.parse(trading.buy_price_mode)
        order = Order(
            code=code,
            side=OrderSide.BUY,
            quantity=quantity,
            price=order_price(price, trading.buy_price_offset, mode),
            price_mode=mode,
            reason=", ".join(decision.matched),
        )
        if not await self._submit(order, account_ref, candidate.name):
            report.skipped[code] = "주문 실패"
            return

        self.counters.record_trade(code)
        fill_price = order.price if mode is PriceMode.LIMIT else price
        self.book.open_position(code, candidate.name, quantity, fill_price)
        report.buys.append(code)

    # ─── 매도 ──────────────────────────────────────────────────────────────

    async def _sell_phase(self, now: datetime, account_ref: str, report: TickReport) -> None:
        for holding in self.book.holdings():
            try:
                decision = self.risk.evaluate(holding, now.time())
                self.book.raise_peak(holding.code, holding.max_profit_pct)
                if decision is None:
                    continue
                order = Order(
                    code=holding.code,
                    side=OrderSide.SELL,
                    quantity=decision.quantity,
                    price=decision.price,
                    price_mode=decision.price_mode,
                    reason=f"{decision.reason.value}: {decision.detail}",
                )
                if await self._submit(order, account_ref, holding.name):
                    self.book.close_position(holding.code)
                    report.sells.append((holding.code, decision.reason))
            except Exception:
                logger.exception(f"[{holding.code}] 매도 처리 중 오류")

    # ─── 주문 ──────────────────────────────────────────────────────────────

    async def _submit(self, order: Order, account_ref: str, name: str = "") -> bool:
        """주문 전송. 성공 확인된 경우에만 True."""
        side = "매수" if order.side is OrderSide.BUY else "매도"
        try:
            order.validate()
            result = await asyncio.to_thread(self.orders.submit, order, account_ref)
        except ValidationError as e:
            logger.warning(f"[{order.code}] {side} 주문 검증 실패, 건너뜀: {e}")
            return False
        except EnvironmentRestrictedError as e:
            logger.info(f"[{order.code}] 모의투자 환경 제한으로 {side} 건너뜀: {e}")
            return False
        except RateLimitedError:
            logger.debug(f"[{order.code}] 요청 제한으로 {side} 건너뜀")
            return False

        if not result.success:
            order_logger.warning(f"{side} 실패: {order.code} {name} {order.quantity}주 ({result.message})")
            return False

        mode = "시장가" if order.price_mode is PriceMode.MARKET else "지정가"
        message = (
            f"{side} 주문: {order.code} {name} {order.quantity}주 @ {order.price:,.0f}원 "
            f"({mode}, {order.reason}) 주문번호={result.order_id}"
        )
        order_logger.info(message)
        if self.notifier is not None:
            await asyncio.to_thread(self.notifier.notify, message)
        return True

    def _persist_counters(self) -> None:
        try:
            self.counter_store.save(self.counters.to_dict())
        except OSError as e:
            logger.error(f"매매 카운터 저장 실패: {e}")
