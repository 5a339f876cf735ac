"""领域层业务异常定义，供领域与基础设施使用。

基础设施层（对象存储客户端）的异常均继承自 BusinessException，
调用方可以统一按 code / error_type 处理。
"""
from __future__ import annotations

from typing import Optional


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)
