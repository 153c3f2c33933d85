"""
gh CLI 傳輸
透過 `gh secret set` 寫入 repository secret
"""

import subprocess
from typing import List, Optional

from utils import SyncLogger, LogIcons
from .base import SecretTransport, TransportResult


class GhCliTransport(SecretTransport):
    """使用 GitHub CLI 的傳輸實作"""

    name = "gh"

    def __init__(
        self,
        executable: str = "gh",
        timeout: Optional[float] = 60,
        logger: Optional[SyncLogger] = None
    ):
        super().__init__(logger)
        self.executable = executable
        self.timeout = timeout

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        return subprocess.run(
            [self.executable, *args],
            capture_output=True,
            text=True,
            timeout=self.timeout,
            check=False,
        )

    def set_secret(self, target: str, name: str, value: str) -> TransportResult:
        try:
            proc = self._run(["secret", "set", name, "--repo", target, "--body", value])
        except (OSError, subprocess.SubprocessError) as e:
            # gh 不存在、逾時等
            return TransportResult.fail(str(e))

        if proc.returncode == 0:
            return TransportResult.ok()

        self._log('debug', LogIcons.ERROR, f"gh secret set {target} exit={proc.returncode}")
        return TransportResult.fail(proc.stderr)

    def verify_auth(self) -> bool:
        """`gh auth status` 結束碼為 0 即視為已登入"""
        try:
            proc = self._run(["auth", "status"])
        except (OSError, subprocess.SubprocessError):
            return False
        return proc.returncode == 0
