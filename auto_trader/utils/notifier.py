"""
텔레그램 매매 알림 모듈.

[ 역할 ]
    매수/매도 주문 성공 시 텔레그램 봇으로 메시지 전송.
    알림 실패는 로그만 남기고 매매 흐름에 영향을 주지 않는다.

[ 호출하는 곳 ]
    - engine/scheduler.py: 주문 성공 후 notify()
"""

import logging

import requests

from auto_trader.utils.config import NotifierConfig

logger = logging.getLogger("auto_trader.notifier")

TELEGRAM_URL = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramNotifier:
    def __init__(self, config: NotifierConfig, timeout: float = 5.0):
        self.config = config
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.config.enabled and self.config.bot_token and self.config.chat_id)

    def notify(self, message: str) -> bool:
        """메시지 전송. 비활성화 상태이거나 실패하면 False."""
        if not self.enabled:
            return False
        url = TELEGRAM_URL.format(token=self.config.bot_token)
        try:
            resp = requests.post(
                url,
                data={"chat_id": self.config.chat_id, "text": message},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"텔레그램 전송 오류: {e}")
            return False
        if not resp.ok:
            logger.warning(f"텔레그램 전송 실패: {resp.status_code} {resp.text}")
            return False
        return True
