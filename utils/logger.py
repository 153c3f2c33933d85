"""
統一日誌系統
終端 + 檔案雙重記錄；secret 內容一律不寫入日誌
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


class SyncLogger:
    """同步系統日誌管理器"""

    def __init__(self, name: str, log_dir: Optional[str] = "logs", verbose: bool = False):
        """
        Args:
            name: logger 名稱（同時作為日誌檔前綴）
            log_dir: 日誌目錄；None 表示只輸出到終端
            verbose: 終端是否輸出 DEBUG
        """
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        # 避免重複添加 handler
        if self.logger.handlers:
            return

        # Console Handler（終端輸出）
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        console_handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(message)s',
            datefmt='%H:%M:%S'
        ))
        self.logger.addHandler(console_handler)

        if log_dir is None:
            return

        # File Handler（檔案輸出）
        log_path = Path(log_dir).expanduser()
        log_path.mkdir(parents=True, exist_ok=True)
        log_file = log_path / f"{name}_{datetime.now():%Y%m%d}.log"
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        self.logger.addHandler(file_handler)

    def info(self, icon, message):
        """資訊級別日誌"""
        self.logger.info(f"{icon} {message}")

    def success(self, icon, message):
        """成功日誌（使用 info 級別）"""
        self.logger.info(f"{icon} {message}")

    def warning(self, icon, message):
        """警告日誌"""
        self.logger.warning(f"{icon} {message}")

    def error(self, icon, message, exc_info=None):
        """錯誤日誌"""
        if exc_info:
            self.logger.error(f"{icon} {message}", exc_info=exc_info)
        else:
            self.logger.error(f"{icon} {message}")

    def debug(self, message):
        """調試日誌"""
        self.logger.debug(message)


# 日誌圖示常數
class LogIcons:
    """統一的日誌圖示"""
    START = "🏁"
    CONNECT = "📡"
    KEY = "🔑"
    PROGRESS = "🔄"
    UPDATE = "🔄"
    UPLOAD = "📤"
    SUCCESS = "✨"
    COMPLETE = "✅"
    SKIP = "⏭️"
    ERROR = "❌"
    WARNING = "⚠️"
    WATCH = "👁️"
