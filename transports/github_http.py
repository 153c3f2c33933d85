"""
GitHub HTTP 傳輸
直接呼叫 GitHub REST API：取得 repo 公鑰 → sealed box 加密 → PUT secret
"""

from __future__ import annotations

import base64
from typing import Any, Dict, Optional, Tuple

import requests
from nacl import encoding, public
from nacl.exceptions import CryptoError

from utils import SyncLogger, LogIcons
from .base import SecretTransport, TransportResult


GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
MISSING_TOKEN_ERROR = "GitHub token is required for HTTP method"


def encrypt_secret(public_key_b64: str, secret_value: str) -> str:
    """
    以 repo 公鑰做 libsodium sealed box 加密（GitHub 要求的格式）

    Args:
        public_key_b64: GitHub 回傳的 base64 公鑰
        secret_value: 明文

    Returns:
        base64 編碼的密文
    """
    key = public.PublicKey(public_key_b64.encode("utf-8"), encoding.Base64Encoder())
    sealed = public.SealedBox(key).encrypt(secret_value.encode("utf-8"))
    return base64.b64encode(sealed).decode("utf-8")


class GithubHttpTransport(SecretTransport):
    """使用 GitHub REST API 的傳輸實作"""

    name = "http"

    def __init__(
        self,
        token: Optional[str],
        base_url: str = GITHUB_API_BASE,
        timeout: int = 30,
        logger: Optional[SyncLogger] = None
    ):
        super().__init__(logger)
        self.token = token
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        # 使用 Session 重用連線，並統一 headers
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        })
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """統一的 HTTP 入口（不重試；連線錯誤直接拋出 RequestException）"""
        return self.session.request(
            method=method,
            url=f"{self.base_url}{endpoint}",
            json=json,
            timeout=self.timeout,
        )

    @staticmethod
    def _is_success(resp: requests.Response) -> bool:
        """只有 2xx 算成功（未跟隨的 3xx 也是失敗）"""
        return 200 <= resp.status_code < 300

    @staticmethod
    def _error_text(resp: requests.Response) -> str:
        """失敗時回傳 response body 原文，沒有 body 時退回狀態碼"""
        return resp.text or f"HTTP {resp.status_code}"

    @staticmethod
    def _split_target(target: str) -> Optional[Tuple[str, str]]:
        parts = target.split("/")
        if len(parts) != 2 or not all(parts):
            return None
        return parts[0], parts[1]

    def get_public_key(self, owner: str, repo: str) -> Tuple[Optional[Dict[str, str]], Optional[str]]:
        """
        取得 repo 的 Actions secret 公鑰

        Returns:
            (key, error)：成功時 key 為 {'key_id', 'key'}，失敗時 error 為訊息
        """
        try:
            resp = self._request("GET", f"/repos/{owner}/{repo}/actions/secrets/public-key")
        except requests.RequestException as e:
            return None, str(e)

        if not self._is_success(resp):
            return None, self._error_text(resp)

        try:
            data = resp.json()
            return {"key_id": data["key_id"], "key": data["key"]}, None
        except (ValueError, KeyError, TypeError) as e:
            return None, f"Invalid public key response: {e}"

    def set_secret(self, target: str, name: str, value: str) -> TransportResult:
        if not self.token:
            return TransportResult.fail(MISSING_TOKEN_ERROR)

        parsed = self._split_target(target)
        if parsed is None:
            return TransportResult.fail(f"Invalid repository '{target}', expected owner/repo")
        owner, repo = parsed

        key, error = self.get_public_key(owner, repo)
        if key is None:
            return TransportResult.fail(f"Failed to get public key: {error}")

        try:
            encrypted_value = encrypt_secret(key["key"], value)
        except (ValueError, TypeError, CryptoError) as e:
            return TransportResult.fail(f"Failed to encrypt secret: {e}")

        try:
            resp = self._request(
                "PUT",
                f"/repos/{owner}/{repo}/actions/secrets/{name}",
                json={"encrypted_value": encrypted_value, "key_id": key["key_id"]},
            )
        except requests.RequestException as e:
            return TransportResult.fail(str(e))

        if not self._is_success(resp):
            self._log('debug', LogIcons.ERROR, f"PUT secret {target} -> HTTP {resp.status_code}")
            return TransportResult.fail(self._error_text(resp))

        return TransportResult.ok()

    def verify_auth(self) -> bool:
        """`GET /user` 回 2xx 即代表 token 有效"""
        if not self.token:
            return False
        try:
            resp = self._request("GET", "/user")
        except requests.RequestException:
            return False
        return self._is_success(resp)
