"""
憑證資料模型
解析 auth.json：provider 名稱 → OAuth 或 API Key 條目
"""

import json
from typing import Any, Dict, Union


class CredentialsDecodeError(ValueError):
    """auth.json 內容無法解析為合法憑證"""


class OAuthEntry:
    """OAuth 類型條目（會被 token refresh 更新）"""

    type = "oauth"

    def __init__(self, access: str, refresh: str, expires: int):
        self.access = access
        self.refresh = refresh
        self.expires = expires

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "access": self.access,
            "refresh": self.refresh,
            "expires": self.expires,
        }

    def __eq__(self, other) -> bool:
        return isinstance(other, OAuthEntry) and self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        # 不輸出 token 內容
        return f"OAuthEntry(expires={self.expires})"


class ApiKeyEntry:
    """API Key 類型條目"""

    type = "api"

    def __init__(self, key: str):
        self.key = key

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "key": self.key}

    def __eq__(self, other) -> bool:
        return isinstance(other, ApiKeyEntry) and self.key == other.key

    def __repr__(self) -> str:
        return "ApiKeyEntry(key=***)"


CredentialEntry = Union[OAuthEntry, ApiKeyEntry]
Credentials = Dict[str, CredentialEntry]


def _require(entry: Dict[str, Any], field: str, kind, provider: str):
    value = entry.get(field)
    # bool 是 int 的子類，expires 不接受 true/false
    if not isinstance(value, kind) or isinstance(value, bool):
        raise CredentialsDecodeError(
            f"provider '{provider}' 的欄位 '{field}' 缺少或型別錯誤"
        )
    return value


def _parse_entry(provider: str, entry: Any) -> CredentialEntry:
    if not isinstance(entry, dict):
        raise CredentialsDecodeError(f"provider '{provider}' 的條目不是物件")

    entry_type = entry.get("type")
    if entry_type == OAuthEntry.type:
        return OAuthEntry(
            access=_require(entry, "access", str, provider),
            refresh=_require(entry, "refresh", str, provider),
            expires=_require(entry, "expires", (int, float), provider),
        )
    if entry_type == ApiKeyEntry.type:
        return ApiKeyEntry(key=_require(entry, "key", str, provider))

    raise CredentialsDecodeError(
        f"provider '{provider}' 的類型不支援: {entry_type!r}"
    )


def parse_credentials(raw: str) -> Credentials:
    """
    解析 auth.json 文字內容

    Args:
        raw: 檔案原始文字

    Returns:
        { provider: OAuthEntry | ApiKeyEntry }

    Raises:
        CredentialsDecodeError: JSON 格式錯誤或條目不符合任一種結構
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, RecursionError) as e:
        # 過深的巢狀結構會讓 json 觸發 RecursionError
        raise CredentialsDecodeError(f"JSON 解析失敗: {e}") from e

    if not isinstance(data, dict):
        raise CredentialsDecodeError("auth.json 頂層必須是物件")

    return {provider: _parse_entry(provider, entry) for provider, entry in data.items()}
