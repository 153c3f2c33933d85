"""
憑證檔案監聽器
監控 auth.json 變更，防抖 + 指紋比對後才通知上層同步
"""

import os
import threading
import time
from functools import partial
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from utils import SyncLogger, LogIcons
from .credentials import Credentials, CredentialsDecodeError, parse_credentials
from .hash_calculator import HashCalculator


# 寫入穩定偵測最長等待（秒），避免持續寫入的檔案讓評估永遠卡住
STABILITY_MAX_WAIT = 10.0


class MonitorState:
    """監聽器狀態"""
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    EVALUATING = "evaluating"


class CredentialsMonitor:
    """
    單一憑證檔案監聽器

    狀態機：
        IDLE ──事件──▶ DEBOUNCING ──timer 到期──▶ EVALUATING ──▶ IDLE
    - DEBOUNCING 期間的事件會重設 timer（trailing-edge 防抖）
    - EVALUATING 期間的事件只記錄下來，評估結束後再排下一輪防抖
    """

    def __init__(
        self,
        credentials_path: str,
        on_credentials_change: Callable[[Credentials, str, str], None],
        on_error: Callable[[Exception], None],
        delay: float = 1.0,
        baseline_hash: Optional[str] = None,
        stability_threshold: float = 0.5,
        poll_interval: float = 0.1,
        logger: Optional[SyncLogger] = None,
        timer_factory: Optional[Callable] = None,
        observer_factory: Optional[Callable] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        初始化監聽器

        Args:
            credentials_path:      要監聽的憑證檔案路徑
            on_credentials_change: 內容變更回調，簽名為
                                   callback(credentials, raw, fingerprint)
            on_error:              讀取/解析失敗回調，簽名為 callback(error)
            delay:                 防抖延遲（秒）
            baseline_hash:         上次執行已同步的指紋，首次讀到相同內容時不觸發
            stability_threshold:   檔案大小/mtime 需維持不變的秒數（0 = 不等待）
            poll_interval:         穩定偵測的輪詢間隔（秒）
            logger:                日誌記錄器
            timer_factory:         Timer 建構函式（預設 threading.Timer）
            observer_factory:      watchdog Observer 建構函式
            clock / sleep:         時間來源，測試時可替換
        """
        self.credentials_path = Path(credentials_path).expanduser().absolute()
        self.on_credentials_change = on_credentials_change
        self.on_error = on_error
        self.delay = delay
        self.stability_threshold = stability_threshold
        self.poll_interval = poll_interval
        self.logger = logger

        self._timer_factory = timer_factory
        self._observer_factory = observer_factory or Observer
        self._clock = clock
        self._sleep = sleep

        self._last_hash: Optional[str] = baseline_hash
        self._state = MonitorState.IDLE
        self._pending_event = False
        self._timer = None
        self._generation = 0
        self._observer = None
        self._started = False
        self._stopped = False

        # _lock 保護狀態機；_callback_lock 讓 stop() 等待進行中的回調
        self._lock = threading.Lock()
        self._callback_lock = threading.RLock()

    # ── 屬性 ──────────────────────────────────────────────────────────────────

    @property
    def state(self) -> str:
        return self._state

    @property
    def last_hash(self) -> Optional[str]:
        return self._last_hash

    def _log(self, level: str, icon: str, message: str, exc_info=None) -> None:
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

    # ── 事件處理器工廠 ────────────────────────────────────────────────────────

    def _make_handler(self) -> FileSystemEventHandler:
        """父目錄 handler：只關心目標檔名的建立/修改/移入（原子儲存）"""
        monitor = self
        target_name = self.credentials_path.name

        class Handler(FileSystemEventHandler):
            def on_any_event(self, event: FileSystemEvent):
                if event.is_directory:
                    return
                if event.event_type == EVENT_TYPE_MOVED:
                    path = os.fsdecode(event.dest_path)
                elif event.event_type in (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED):
                    path = os.fsdecode(event.src_path)
                else:
                    # opened / closed / deleted 不算內容變更
                    return
                if Path(path).name == target_name:
                    monitor.notify()

        return Handler()

    # ── 防抖排程 ──────────────────────────────────────────────────────────────

    def notify(self) -> None:
        """收到一個原始檔案事件"""
        with self._lock:
            if self._stopped:
                return
            if self._state == MonitorState.EVALUATING:
                # 評估中不重設 timer，結束後補排
                self._pending_event = True
                return
            self._arm_timer()
            self._state = MonitorState.DEBOUNCING

    def _arm_timer(self) -> None:
        """重設防抖 timer（呼叫端需持有 _lock）"""
        if self._timer:
            self._timer.cancel()
        self._generation += 1
        factory = self._timer_factory or threading.Timer
        t = factory(self.delay, partial(self._on_timer, self._generation))
        t.daemon = True
        self._timer = t
        t.start()

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            # 已被取消或被較新的 timer 取代
            if self._stopped or generation != self._generation:
                return
            self._timer = None
            self._state = MonitorState.EVALUATING

        try:
            self._evaluate()
        finally:
            with self._lock:
                if not self._stopped and self._pending_event:
                    self._pending_event = False
                    self._arm_timer()
                    self._state = MonitorState.DEBOUNCING
                else:
                    self._pending_event = False
                    self._state = MonitorState.IDLE

    # ── 評估 ──────────────────────────────────────────────────────────────────

    def _stat_signature(self):
        st = os.stat(self.credentials_path)
        return st.st_size, st.st_mtime_ns

    def _wait_for_write_finish(self) -> None:
        """等待檔案大小與 mtime 穩定（避免讀到寫到一半的內容）"""
        if self.stability_threshold <= 0:
            return

        started = self._clock()
        last = self._stat_signature()
        stable_since = started

        while self._clock() - stable_since < self.stability_threshold:
            if self._stopped:
                return
            if self._clock() - started >= STABILITY_MAX_WAIT:
                self._log('debug', '', "[CredentialsMonitor] 等待寫入穩定逾時，直接讀取")
                return
            self._sleep(self.poll_interval)
            current = self._stat_signature()
            if current != last:
                last = current
                stable_since = self._clock()

    def _evaluate(self) -> None:
        """讀檔 → 解析 → 指紋比對 → 必要時通知"""
        try:
            self._wait_for_write_finish()
            raw = self.credentials_path.read_text(encoding='utf-8')
            credentials = parse_credentials(raw)
        except (OSError, UnicodeDecodeError, CredentialsDecodeError) as e:
            # 不更新指紋，下次事件可以正常恢復
            self._report_error(e)
            return

        fingerprint = HashCalculator.calculate(raw)

        with self._callback_lock:
            if self._stopped:
                return
            if self._last_hash is not None and HashCalculator.compare(fingerprint, self._last_hash):
                self._log('debug', '', f"[CredentialsMonitor] 內容未變更，略過 ({fingerprint[:12]})")
                return

            self._last_hash = fingerprint
            self._log('info', LogIcons.UPDATE, f"偵測到憑證變更 ({fingerprint[:12]})")
            try:
                self.on_credentials_change(credentials, raw, fingerprint)
            except Exception as e:
                self._log('error', LogIcons.ERROR, f"[CredentialsMonitor] 回調執行錯誤: {e}", exc_info=e)

    def _report_error(self, error: Exception) -> None:
        with self._callback_lock:
            if self._stopped:
                return
            self._log('warning', LogIcons.WARNING, f"讀取憑證失敗: {error}")
            try:
                self.on_error(error)
            except Exception as e:
                self._log('error', LogIcons.ERROR, f"[CredentialsMonitor] 錯誤回調執行錯誤: {e}", exc_info=e)

    # ── 生命週期 ──────────────────────────────────────────────────────────────

    def start(self) -> None:
        with self._lock:
            if self._started or self._stopped:
                return
            self._started = True

        watch_dir = self.credentials_path.parent
        if not watch_dir.is_dir():
            self._report_error(FileNotFoundError(f"監聽目錄不存在: {watch_dir}"))
            return

        observer = self._observer_factory()
        try:
            observer.schedule(self._make_handler(), str(watch_dir), recursive=False)
            observer.start()
        except OSError as e:
            self._report_error(e)
            return

        with self._lock:
            stopped_meanwhile = self._stopped
            if not stopped_meanwhile:
                self._observer = observer
        if stopped_meanwhile:
            observer.stop()
            observer.join()
            return
        self._log('info', LogIcons.WATCH, f"監聽憑證檔案：{self.credentials_path}")

        # 啟動時檔案已存在，視為一次初始事件
        if self.credentials_path.exists():
            self.notify()

    def stop(self) -> None:
        """停止監聽（可重複呼叫）；返回後不會再有任何回調"""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            if self._timer:
                self._timer.cancel()
                self._timer = None
            self._pending_event = False
            observer = self._observer
            self._observer = None

        # 等待進行中的回調結束（同執行緒重入不會卡住）
        with self._callback_lock:
            pass

        if observer is not None:
            observer.stop()
            if observer is not threading.current_thread():
                observer.join()
        self._log('info', LogIcons.COMPLETE, "憑證監聽已停止")


def watch_credentials(
    credentials_path: str,
    on_credentials_change: Callable[[Credentials, str, str], None],
    on_error: Callable[[Exception], None],
    delay: float = 1.0,
    baseline_hash: Optional[str] = None,
    **kwargs,
) -> Callable[[], None]:
    """
    建立並啟動監聽器，回傳停止函式

    Example:
        stop = watch_credentials('~/.local/share/opencode/auth.json', on_change, on_error)
        ...
        stop()
    """
    monitor = CredentialsMonitor(
        credentials_path,
        on_credentials_change,
        on_error,
        delay=delay,
        baseline_hash=baseline_hash,
        **kwargs,
    )
    monitor.start()
    return monitor.stop
