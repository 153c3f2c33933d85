"""
狀態管理器
記錄每個目標最後一次成功同步的憑證指紋
"""

import json
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Dict, List, Optional, Sequence

from .hash_calculator import HashCalculator
from .sync_engine import SyncSummary


class StateManager:
    """同步狀態管理器"""

    def __init__(self, state_file: str):
        """
        初始化狀態管理器

        Args:
            state_file: 指紋狀態文件路徑
        """
        self.state_file = Path(state_file).expanduser()

        # { target: fingerprint }
        self._target_hashes: Dict[str, str] = {}

        # _load() 中產生的警告，由上層用 logger 輸出
        self._load_warnings: List[str] = []
        self._load()

    def _load(self) -> None:
        """從文件載入狀態"""
        if not self.state_file.exists():
            return
        try:
            with open(self.state_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            self._load_warnings.append(f"指紋狀態載入失敗: {e}")
            return

        if not isinstance(data, dict):
            self._load_warnings.append("指紋狀態格式錯誤，已忽略")
            return

        self._target_hashes = {
            str(k): v for k, v in data.items() if isinstance(v, str)
        }

    def save(self) -> None:
        """儲存狀態到文件（原子寫入，避免中斷導致 JSON 損壞）"""
        path = self.state_file
        path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            delete=False,
            dir=str(path.parent),
            suffix=".tmp",
        ) as tf:
            json.dump(self._target_hashes, tf, ensure_ascii=False, indent=2, sort_keys=True)
            tf.flush()
            os.fsync(tf.fileno())
            tmp_name = tf.name
        os.replace(tmp_name, str(path))

    # ─────────────────────────────────────────────────────────────
    # target hashes
    # ─────────────────────────────────────────────────────────────
    @property
    def target_hashes(self) -> Dict[str, str]:
        """取得所有目標的指紋（副本）"""
        return dict(self._target_hashes)

    def get_hash(self, target: str) -> Optional[str]:
        return self._target_hashes.get(target)

    def update_target_hash(self, target: str, fingerprint: str) -> None:
        self._target_hashes[target] = fingerprint

    def remove_target(self, target: str) -> None:
        if target in self._target_hashes:
            del self._target_hashes[target]

    def is_synced(self, target: str, fingerprint: str) -> bool:
        stored = self._target_hashes.get(target)
        return stored is not None and HashCalculator.compare(stored, fingerprint)

    def stale_targets(self, targets: Sequence[str], fingerprint: str) -> List[str]:
        """
        需要重新同步的目標（指紋不同或從未同步），保持輸入順序
        """
        return [t for t in targets if not self.is_synced(t, fingerprint)]

    def baseline_for(self, targets: Sequence[str]) -> Optional[str]:
        """
        所有目標都記錄同一個指紋時回傳該指紋，作為監聽器的初始基準；
        否則回傳 None（啟動後第一次讀取一定會觸發）
        """
        if not targets:
            return None
        hashes = {self._target_hashes.get(t) for t in targets}
        if len(hashes) != 1:
            return None
        return hashes.pop()

    def record_summary(self, summary: SyncSummary, fingerprint: str) -> None:
        """只記錄成功的目標；失敗的目標下次仍會被視為 stale"""
        for result in summary.results:
            if result.success:
                self._target_hashes[result.target] = fingerprint

    def get_load_warnings(self) -> List[str]:
        """取得載入警告列表"""
        return self._load_warnings
