"""
配置載入器
支援 YAML 配置文件載入、預設值合併和環境變數替換
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict

import yaml


DEFAULT_CONFIG: Dict[str, Any] = {
    'enabled': True,
    'credentials': {
        'path': '~/.local/share/opencode/auth.json',
        'secret_name': 'OPENCODE_AUTH_JSON',
    },
    'sync': {
        'repositories': [],
        'method': 'gh',
        'github_token': None,
        'debounce': 1.0,
        'stability_threshold': 0.5,
        'poll_interval': 0.1,
    },
    'state': {
        'hash_file': '.auth_sync_state.json',
    },
    'logging': {
        'dir': 'logs',
    },
}

SUPPORTED_METHODS = ('gh', 'http')


class ConfigLoader:
    """配置載入器"""

    @staticmethod
    def load(config_path: str) -> Dict[str, Any]:
        """
        載入配置文件並與預設值合併

        Args:
            config_path: 配置文件路徑

        Returns:
            配置字典

        Raises:
            FileNotFoundError: 配置文件不存在
            ValueError: 配置格式錯誤
        """
        config_file = Path(config_path).expanduser()

        if not config_file.exists():
            raise FileNotFoundError(f"配置文件不存在: {config_path}")

        with open(config_file, 'r', encoding='utf-8') as f:
            user_config = yaml.safe_load(f) or {}

        if not isinstance(user_config, dict):
            raise ValueError(f"配置文件頂層必須是映射: {config_path}")

        # 替換環境變數
        user_config = ConfigLoader._replace_env_vars(user_config)

        config = ConfigLoader.merge(DEFAULT_CONFIG, user_config)

        # 驗證必要欄位
        ConfigLoader._validate_config(config)

        return config

    @staticmethod
    def merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """遞迴合併，override 的值優先；不修改傳入的字典"""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(result.get(key), dict):
                result[key] = ConfigLoader.merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
        return result

    @staticmethod
    def expand_path(path: str) -> str:
        """展開 ~ 開頭的路徑"""
        return str(Path(path).expanduser())

    @staticmethod
    def _replace_env_vars(obj: Any) -> Any:
        """
        遞迴替換配置中的環境變數
        支援 ${VAR_NAME} 和 $VAR_NAME 格式
        """
        if isinstance(obj, dict):
            return {k: ConfigLoader._replace_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [ConfigLoader._replace_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            # 匹配 ${VAR_NAME} 或 $VAR_NAME
            pattern = r'\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)'

            def replacer(match):
                var_name = match.group(1) or match.group(2)
                value = os.getenv(var_name)
                if value is None:
                    raise ValueError(
                        f"環境變數 '{var_name}' 未設定，"
                        f"請執行: export {var_name}='your_value'"
                    )
                return value

            return re.sub(pattern, replacer, obj)
        else:
            return obj

    @staticmethod
    def _validate_config(config: Dict[str, Any]) -> None:
        """
        驗證配置的欄位型別

        Raises:
            ValueError: 配置驗證失敗
        """
        secret_name = ConfigLoader.get_nested(config, 'credentials.secret_name')
        if not isinstance(secret_name, str) or not secret_name:
            raise ValueError("配置欄位 credentials.secret_name 必須是非空字串")

        path = ConfigLoader.get_nested(config, 'credentials.path')
        if not isinstance(path, str) or not path:
            raise ValueError("配置欄位 credentials.path 必須是非空字串")

        repositories = ConfigLoader.get_nested(config, 'sync.repositories')
        if not isinstance(repositories, list) or not all(isinstance(r, str) for r in repositories):
            raise ValueError("配置欄位 sync.repositories 必須是字串列表")

        method = ConfigLoader.get_nested(config, 'sync.method')
        if method not in SUPPORTED_METHODS:
            raise ValueError(
                f"配置欄位 sync.method 不支援: {method}（可用: {', '.join(SUPPORTED_METHODS)}）"
            )

        for field in ('debounce', 'stability_threshold', 'poll_interval'):
            value = ConfigLoader.get_nested(config, f'sync.{field}')
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ValueError(f"配置欄位 sync.{field} 必須是非負數字")

    @staticmethod
    def get_nested(config: Dict[str, Any], path: str, default: Any = None) -> Any:
        """
        取得嵌套配置值

        Args:
            config: 配置字典
            path: 點分隔的路徑，如 'sync.debounce'
            default: 預設值

        Returns:
            配置值或預設值

        Example:
            value = ConfigLoader.get_nested(config, 'sync.debounce', 1.0)
        """
        keys = path.split('.')
        obj = config

        try:
            for key in keys:
                obj = obj[key]
            return obj
        except (KeyError, TypeError):
            return default
