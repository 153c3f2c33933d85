"""
傳輸層基類
定義「把一個 secret 寫到一個目標」的抽象介面
"""

from abc import ABC, abstractmethod
from typing import NamedTuple, Optional

from utils import SyncLogger


class TransportResult(NamedTuple):
    """單次 set_secret 的結果"""
    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> 'TransportResult':
        return cls(True, None)

    @classmethod
    def fail(cls, error: str) -> 'TransportResult':
        return cls(False, error)


class SecretTransport(ABC):
    """Secret 傳輸介面（gh CLI / GitHub HTTP API）"""

    name = "base"

    def __init__(self, logger: Optional[SyncLogger] = None):
        self.logger = logger

    def _log(self, level: str, icon: str, message: str, exc_info=None):
        """內部日誌方法"""
        if not self.logger:
            return
        if level == 'error':
            self.logger.error(icon, message, exc_info=exc_info)
        elif level == 'warning':
            self.logger.warning(icon, message)
        elif level == 'debug':
            self.logger.debug(message)
        else:
            self.logger.info(icon, message)

    @abstractmethod
    def set_secret(self, target: str, name: str, value: str) -> TransportResult:
        """
        把 secret 寫入單一目標

        Args:
            target: 目標識別碼（如 'owner/repo'）
            name: secret 名稱
            value: secret 內容

        Returns:
            TransportResult；失敗時 error 為底層系統的原始訊息
        """

    @abstractmethod
    def verify_auth(self) -> bool:
        """確認目前的認證可用"""
