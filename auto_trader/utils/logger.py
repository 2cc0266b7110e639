"""
로깅 모듈.

[ 역할 ]
    파일 + 콘솔 로거를 설정. 주문 실행 내역, 스킵 사유, 에러 등을 기록.
    주문 전송 결과는 별도 파일(orders_YYYYMMDD.log)에도 남긴다.

[ 로그 파일 위치 ]
    {log_dir}/{name}_{YYYYMMDD}.log   (예: logs/auto_trader_20240601.log)
    {log_dir}/orders_{YYYYMMDD}.log   ("auto_trader.orders" 로거 전용)

[ 호출하는 곳 ]
    - run_trader.py에서 setup_logger() 호출
    - 각 모듈은 logging.getLogger("auto_trader.<영역>") 사용
      (scheduler, market_data, evaluator, risk, counters, notifier, orders)
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

ORDER_LOGGER_NAME = "auto_trader.orders"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _daily_file_handler(log_path: Path, prefix: str, formatter: logging.Formatter) -> logging.FileHandler:
    today = datetime.now().strftime("%Y%m%d")
    handler = logging.FileHandler(log_path / f"{prefix}_{today}.log", encoding="utf-8")
    handler.setFormatter(formatter)
    return handler


def setup_logger(
    name: str = "auto_trader",
    level: str = "INFO",
    log_dir: str = "logs",
    console: bool = True,
    order_log: bool = True,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(일별) + 콘솔 핸들러 + 주문 로그 핸들러 등록."""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.addHandler(_daily_file_handler(log_path, name, formatter))

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # 주문 로그는 상위 로거로도 전파되므로 메인 로그에도 함께 남는다
    if order_log:
        order_logger = logging.getLogger(ORDER_LOGGER_NAME)
        if not order_logger.handlers:
            order_logger.addHandler(_daily_file_handler(log_path, "orders", formatter))

    return logger
