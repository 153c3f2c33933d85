"""
Auth Secret Sync - 主入口
監聽 OpenCode 憑證檔案，變更時同步到 GitHub repository secrets
"""

import sys
import time
import argparse
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from utils import ConfigLoader, SyncLogger, LogIcons
from core import (
    CredentialsDecodeError,
    CredentialsMonitor,
    HashCalculator,
    SecretSyncEngine,
    StateManager,
    SyncSummary,
    parse_credentials,
)
from transports import SecretTransport, create_transport


APP_NAME = "auth-secret-sync"


class AuthSyncApplication:
    """同步應用程式"""

    def __init__(
        self,
        config: Dict[str, Any],
        transport: Optional[SecretTransport] = None,
        logger: Optional[SyncLogger] = None
    ):
        """
        初始化應用程式

        Args:
            config: 已合併預設值的配置字典（見 ConfigLoader.load）
            transport: 指定傳輸實作；None 時依 sync.method 建立
            logger: 日誌記錄器；None 時依 logging.dir 建立
        """
        self.config = config
        self.logger = logger or SyncLogger(
            APP_NAME,
            log_dir=ConfigLoader.get_nested(config, 'logging.dir', 'logs')
        )

        self.credentials_path = ConfigLoader.expand_path(config['credentials']['path'])
        self.secret_name = config['credentials']['secret_name']
        self.repositories = list(config['sync']['repositories'])

        self.transport = transport or create_transport(
            config['sync']['method'],
            github_token=config['sync'].get('github_token'),
            logger=self.logger
        )
        self.engine = SecretSyncEngine(self.transport, logger=self.logger)

        self.state_manager = StateManager(config['state']['hash_file'])
        for warning in self.state_manager.get_load_warnings():
            self.logger.warning(LogIcons.WARNING, warning)

        # 同步鎖（防止 run_once 與監聽回調並發同步）
        self.sync_lock = threading.Lock()
        self.monitor: Optional[CredentialsMonitor] = None
        self._is_first_sync = True

    # ── 同步流程 ──────────────────────────────────────────────────────────────

    def handle_credentials_change(self, credentials, raw: str, fingerprint: str) -> Optional[SyncSummary]:
        """
        憑證變更回調：只推送到指紋不同的目標，成功的目標記錄新指紋

        Returns:
            SyncSummary；沒有需要同步的目標時回傳 None
        """
        with self.sync_lock:
            targets = self.state_manager.stale_targets(self.repositories, fingerprint)
            if not targets:
                self.logger.info(LogIcons.SKIP, "所有目標皆已是最新憑證，略過同步")
                return None

            action = "初始同步" if self._is_first_sync else "同步"
            self.logger.info(
                LogIcons.PROGRESS,
                f"{action} {len(credentials)} 個 provider 到 {len(targets)} 個 repo..."
            )

            summary = self.engine.sync_all(targets, self.secret_name, raw)

            self.state_manager.record_summary(summary, fingerprint)
            try:
                self.state_manager.save()
            except OSError as e:
                self.logger.error(LogIcons.ERROR, f"指紋狀態儲存失敗: {e}", exc_info=e)

            if summary.failed == 0:
                self.logger.success(LogIcons.COMPLETE, summary.summary_text())
            else:
                self.logger.warning(LogIcons.WARNING, summary.summary_text())

            self._is_first_sync = False
            return summary

    def handle_error(self, error: Exception) -> None:
        """讀取/解析錯誤回調"""
        self.logger.error(LogIcons.ERROR, f"憑證讀取失敗: {error}")

    # ── 執行模式 ──────────────────────────────────────────────────────────────

    def run_once(self) -> Optional[SyncSummary]:
        """讀取一次憑證檔案並同步"""
        self.logger.info(LogIcons.START, f"讀取憑證：{self.credentials_path}")
        try:
            raw = Path(self.credentials_path).read_text(encoding='utf-8')
            credentials = parse_credentials(raw)
        except (OSError, UnicodeDecodeError, CredentialsDecodeError) as e:
            self.handle_error(e)
            return None

        return self.handle_credentials_change(credentials, raw, HashCalculator.calculate(raw))

    def start_monitoring(self) -> CredentialsMonitor:
        """啟動憑證監聽"""
        sync_config = self.config['sync']
        self.monitor = CredentialsMonitor(
            self.credentials_path,
            on_credentials_change=self.handle_credentials_change,
            on_error=self.handle_error,
            delay=sync_config['debounce'],
            baseline_hash=self.state_manager.baseline_for(self.repositories),
            stability_threshold=sync_config['stability_threshold'],
            poll_interval=sync_config['poll_interval'],
            logger=self.logger,
        )
        self.monitor.start()
        return self.monitor

    def stop_monitoring(self) -> None:
        if self.monitor:
            self.monitor.stop()
            self.monitor = None

    def check_ready(self) -> bool:
        """啟動前檢查：是否啟用、是否有目標、認證是否可用"""
        if not self.config.get('enabled', True):
            self.logger.info(LogIcons.SKIP, "同步已停用（enabled: false）")
            return False

        if not self.repositories:
            self.logger.warning(LogIcons.WARNING, "尚未設定任何 repository（sync.repositories）")
            return False

        if not self.transport.verify_auth():
            if self.transport.name == 'http':
                self.logger.error(LogIcons.KEY, "GitHub token 無效或未設定（sync.github_token）")
            else:
                self.logger.error(LogIcons.KEY, "GitHub CLI 尚未登入，請執行: gh auth login")
            return False

        return True

    def run_watch(self) -> None:
        """執行監聽模式"""
        self.start_monitoring()
        self.logger.info(LogIcons.WATCH, f"監控 {len(self.repositories)} 個 repo，按 Ctrl+C 停止...")

        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.logger.info(LogIcons.WARNING, "停止監控...")
            self.stop_monitoring()
            self.logger.info(LogIcons.COMPLETE, "已安全退出")


def main():
    """主函數"""
    parser = argparse.ArgumentParser(
        description='Auth Secret Sync - 憑證檔案變更時自動同步到 GitHub secrets',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
範例:
  # 監聽模式（持續運行）
  python main.py --config auth-sync.yaml --mode watch

  # 單次執行模式
  python main.py --config auth-sync.yaml --mode once
        """
    )

    parser.add_argument(
        '--config',
        required=True,
        help='配置文件路徑 (例如: auth-sync.yaml)'
    )

    parser.add_argument(
        '--mode',
        choices=['once', 'watch'],
        default='watch',
        help='運行模式: once=單次執行, watch=監聽模式 (預設: watch)'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='終端輸出 DEBUG 日誌'
    )

    args = parser.parse_args()

    try:
        config = ConfigLoader.load(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ 配置錯誤: {e}")
        sys.exit(1)

    logger = SyncLogger(
        APP_NAME,
        log_dir=ConfigLoader.get_nested(config, 'logging.dir', 'logs'),
        verbose=args.verbose
    )

    try:
        app = AuthSyncApplication(config, logger=logger)
    except (ValueError, OSError) as e:
        print(f"❌ 初始化失敗: {e}")
        sys.exit(1)

    if not app.check_ready():
        # 停用不算錯誤
        sys.exit(0 if not config.get('enabled', True) else 1)

    if args.mode == 'once':
        summary = app.run_once()
        sys.exit(1 if summary is not None and summary.failed else 0)
    else:
        app.run_watch()


if __name__ == '__main__':
    main()
