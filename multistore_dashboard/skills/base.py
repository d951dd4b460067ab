"""订单技能的公共抽象：统一的调用入口与面向 MCP 客户端的能力描述。"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List


@dataclass
class Skill(ABC):
    """所有订单技能的共同接口。

    - ``name`` 与 MCP 工具名一致；
    - ``description`` 给出中文用途说明；
    - ``invoke`` 只接受关键字参数，返回 JSON 可序列化结构。
    """

    name: str
    description: str

    @abstractmethod
    def invoke(self, **kwargs: Any) -> Any:  # pragma: no cover - 接口定义
        """执行技能主体逻辑。"""

    def parameter_names(self) -> List[str]:
        """列出 ``invoke`` 声明的关键字参数，忽略兜底的 ``**kwargs``。"""
        signature = inspect.signature(self.invoke)
        return [
            parameter.name
            for parameter in signature.parameters.values()
            if parameter.kind is inspect.Parameter.KEYWORD_ONLY
        ]

    def to_descriptor(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameter_names(),
        }
