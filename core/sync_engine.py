"""
同步引擎
把同一個 secret 依序推送到多個目標，彙整每個目標的結果
"""

from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from transports import SecretTransport
from utils import SyncLogger, LogIcons


class SyncResult(NamedTuple):
    """單一目標的同步結果"""
    target: str
    success: bool
    error: Optional[str] = None


class SyncSummary:
    """同步摘要（建立後不可變更）"""

    __slots__ = ('_results', '_successful')

    def __init__(self, results: Sequence[SyncResult]):
        self._results: Tuple[SyncResult, ...] = tuple(results)
        self._successful = sum(1 for r in self._results if r.success)

    @property
    def results(self) -> Tuple[SyncResult, ...]:
        return self._results

    @property
    def total(self) -> int:
        return len(self._results)

    @property
    def successful(self) -> int:
        return self._successful

    @property
    def failed(self) -> int:
        return self.total - self._successful

    def failed_targets(self) -> List[str]:
        """失敗的目標（保持輸入順序）"""
        return [r.target for r in self.results if not r.success]

    def summary_text(self) -> str:
        """變更摘要"""
        if self.failed == 0:
            return f"已同步 {self.successful} 個目標"
        return (
            f"{self.successful} 成功，{self.failed} 失敗: "
            f"{', '.join(self.failed_targets())}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'results': [r._asdict() for r in self.results],
        }

    def __repr__(self) -> str:
        return f"SyncSummary(total={self.total}, successful={self.successful}, failed={self.failed})"


class SecretSyncEngine:
    """Secret 同步引擎"""

    def __init__(self, transport: SecretTransport, logger: Optional[SyncLogger] = None):
        """
        初始化同步引擎

        Args:
            transport: 實際寫入 secret 的傳輸實作
            logger: 日誌記錄器
        """
        self.transport = transport
        self.logger = logger

    def _sync_one(self, target: str, secret_name: str, secret_value: str) -> SyncResult:
        try:
            result = self.transport.set_secret(target, secret_name, secret_value)
            success = result.success
            error = result.error
        except Exception as e:
            # 傳輸層的任何例外（含回傳格式錯誤）都轉成失敗結果，不中斷整批
            return SyncResult(target, False, str(e) or type(e).__name__)

        if success:
            return SyncResult(target, True, None)
        return SyncResult(target, False, error)

    def sync_all(
        self,
        targets: Sequence[str],
        secret_name: str,
        secret_value: str
    ) -> SyncSummary:
        """
        依序同步到所有目標

        - 一次只呼叫一個目標，結果順序與輸入相同
        - 某個目標失敗不會影響後續目標
        - 不會拋出例外，所有失敗都記錄在結果中

        Args:
            targets: 目標列表（如 ['owner/repo']），允許重複
            secret_name: secret 名稱
            secret_value: secret 內容

        Returns:
            SyncSummary
        """
        results: List[SyncResult] = []

        for target in targets:
            result = self._sync_one(target, secret_name, secret_value)
            results.append(result)

            if self.logger:
                if result.success:
                    self.logger.success(LogIcons.UPLOAD, f"{target} ← {secret_name}")
                else:
                    self.logger.error(LogIcons.ERROR, f"{target} 同步失敗: {result.error}")

        return SyncSummary(results)


def sync_all(
    targets: Sequence[str],
    secret_name: str,
    secret_value: str,
    transport: SecretTransport,
    logger: Optional[SyncLogger] = None
) -> SyncSummary:
    """SecretSyncEngine(transport).sync_all(...) 的簡寫"""
    return SecretSyncEngine(transport, logger=logger).sync_all(targets, secret_name, secret_value)
