"""
測試 StateManager：每個目標各自記錄指紋
"""

import json

from core.state_manager import StateManager
from core.sync_engine import SyncResult, SyncSummary


def test_missing_file_starts_empty(tmp_path):
    sm = StateManager(str(tmp_path / "state.json"))

    assert sm.target_hashes == {}
    assert sm.get_load_warnings() == []


def test_save_and_reload(tmp_path):
    path = tmp_path / "nested" / "state.json"
    sm = StateManager(str(path))
    sm.update_target_hash("o/a", "h1")
    sm.save()

    assert json.loads(path.read_text(encoding="utf-8")) == {"o/a": "h1"}
    assert StateManager(str(path)).get_hash("o/a") == "h1"
    # 原子寫入不留暫存檔
    assert [p.name for p in path.parent.iterdir()] == ["state.json"]


def test_corrupt_file_resets_with_warning(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    sm = StateManager(str(path))

    assert sm.target_hashes == {}
    assert len(sm.get_load_warnings()) == 1


def test_non_mapping_file_is_ignored(tmp_path):
    path = tmp_path / "state.json"
    path.write_text('["o/a"]', encoding="utf-8")
    sm = StateManager(str(path))

    assert sm.target_hashes == {}
    assert len(sm.get_load_warnings()) == 1


def test_stale_targets_keeps_order(tmp_path):
    sm = StateManager(str(tmp_path / "state.json"))
    sm.update_target_hash("o/b", "new")
    sm.update_target_hash("o/c", "old")

    assert sm.stale_targets(["o/a", "o/b", "o/c"], "new") == ["o/a", "o/c"]
    assert sm.stale_targets(["o/a", "o/b", "o/c"], "NEW") == ["o/a", "o/c"]


def test_baseline_for(tmp_path):
    sm = StateManager(str(tmp_path / "state.json"))
    assert sm.baseline_for([]) is None
    assert sm.baseline_for(["o/a"]) is None

    sm.update_target_hash("o/a", "h1")
    sm.update_target_hash("o/b", "h1")
    assert sm.baseline_for(["o/a", "o/b"]) == "h1"

    # 新加入的 repo 還沒同步過 → 不能抑制初次觸發
    assert sm.baseline_for(["o/a", "o/b", "o/new"]) is None

    sm.update_target_hash("o/b", "h2")
    assert sm.baseline_for(["o/a", "o/b"]) is None


def test_record_summary_only_successful(tmp_path):
    sm = StateManager(str(tmp_path / "state.json"))
    sm.update_target_hash("o/b", "old")
    summary = SyncSummary([
        SyncResult("o/a", True),
        SyncResult("o/b", False, "denied"),
    ])

    sm.record_summary(summary, "new")

    assert sm.get_hash("o/a") == "new"
    assert sm.get_hash("o/b") == "old"
    assert sm.stale_targets(["o/a", "o/b"], "new") == ["o/b"]


def test_remove_target(tmp_path):
    sm = StateManager(str(tmp_path / "state.json"))
    sm.update_target_hash("o/a", "h")
    sm.remove_target("o/a")
    sm.remove_target("o/missing")

    assert sm.target_hashes == {}
