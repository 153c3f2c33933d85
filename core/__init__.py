"""
核心模組
"""

from .hash_calculator import HashCalculator
from .credentials import (
    OAuthEntry,
    ApiKeyEntry,
    CredentialsDecodeError,
    parse_credentials,
)
from .sync_engine import SecretSyncEngine, SyncResult, SyncSummary, sync_all
from .state_manager import StateManager
from .file_monitor import CredentialsMonitor, MonitorState, watch_credentials

__all__ = [
    'HashCalculator',
    'OAuthEntry',
    'ApiKeyEntry',
    'CredentialsDecodeError',
    'parse_credentials',
    'SecretSyncEngine',
    'SyncResult',
    'SyncSummary',
    'sync_all',
    'StateManager',
    'CredentialsMonitor',
    'MonitorState',
    'watch_credentials',
]
