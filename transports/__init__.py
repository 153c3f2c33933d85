"""
傳輸模組
"""

from typing import Optional

from utils import SyncLogger
from .base import SecretTransport, TransportResult
from .gh_cli import GhCliTransport
from .github_http import GithubHttpTransport, encrypt_secret, MISSING_TOKEN_ERROR


# 傳輸方式映射
TRANSPORTS = {
    'gh': GhCliTransport,
    'http': GithubHttpTransport,
}


def create_transport(
    method: str,
    github_token: Optional[str] = None,
    logger: Optional[SyncLogger] = None
) -> SecretTransport:
    """
    依設定建立傳輸實作（建構時決定，不在每次呼叫時判斷）

    Raises:
        ValueError: 不支援的傳輸方式
    """
    transport_class = TRANSPORTS.get(method)
    if not transport_class:
        raise ValueError(
            f"不支援的傳輸方式: {method}\n"
            f"可用方式: {', '.join(TRANSPORTS.keys())}"
        )

    if transport_class is GithubHttpTransport:
        return GithubHttpTransport(token=github_token, logger=logger)
    return transport_class(logger=logger)


__all__ = [
    'SecretTransport',
    'TransportResult',
    'GhCliTransport',
    'GithubHttpTransport',
    'TRANSPORTS',
    'create_transport',
    'encrypt_secret',
    'MISSING_TOKEN_ERROR',
]
