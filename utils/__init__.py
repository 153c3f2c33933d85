"""
工具模組
"""

from .logger import SyncLogger, LogIcons
from .config_loader import ConfigLoader, DEFAULT_CONFIG

__all__ = [
    'SyncLogger',
    'LogIcons',
    'ConfigLoader',
    'DEFAULT_CONFIG',
]
