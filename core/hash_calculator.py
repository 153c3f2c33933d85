"""
哈希計算器
提供憑證內容的 SHA-256 指紋計算，用於判斷內容是否真的變更
"""

import hashlib
from typing import Union


class HashCalculator:
    """內容指紋計算器"""

    @staticmethod
    def calculate(content: Union[str, bytes]) -> str:
        """
        計算內容的 SHA-256 指紋

        Args:
            content: 可以是：
                - 文字內容（str，以 UTF-8 編碼後計算）
                - 二進位數據（bytes）

        Returns:
            64 位十六進位 SHA-256 字串

        Raises:
            TypeError: 不支援的類型

        Example:
            fp1 = HashCalculator.calculate('{"a":1}')
            fp2 = HashCalculator.calculate('{ "a": 1 }')
            assert fp1 != fp2   # 只差空白也視為不同內容
        """
        if isinstance(content, str):
            data = content.encode('utf-8')
        elif isinstance(content, bytes):
            data = content
        else:
            raise TypeError(
                f"不支援的類型: {type(content)}，僅支援 str, bytes"
            )

        return hashlib.sha256(data).hexdigest()

    @staticmethod
    def compare(hash1: str, hash2: str) -> bool:
        """
        比較兩個指紋是否相同（忽略大小寫）

        Args:
            hash1: 指紋 1
            hash2: 指紋 2

        Returns:
            是否相同
        """
        return hash1.lower() == hash2.lower()
