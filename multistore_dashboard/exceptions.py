"""仪表盘使用的领域异常。

所有异常均继承自 :class:`DashboardError`，调用方可以一次性捕获。
单店铺拉取失败会在 ``pipeline.fetcher`` 中被转换为告警，不会继续向上抛出。
"""

from __future__ import annotations

from typing import Optional


class DashboardError(Exception):
    """仪表盘所有领域异常的基类。"""


class ConfigError(DashboardError):
    """配置或本地持久化状态无效。"""


class TransportError(DashboardError):
    """网络层失败：连接被拒绝、超时等。"""


class ParseError(DashboardError):
    """接口返回了 2xx，但响应体不是预期的 JSON 结构。"""


class RemoteError(DashboardError):
    """
    接口返回非 2xx 状态码。

    属性:
        status (int): HTTP 状态码。
        detail (str): 从响应体中提取的可读错误信息。
    """

    def __init__(self, status: int, detail: str, message: Optional[str] = None) -> None:
        self.status = status
        self.detail = detail
        super().__init__(message or f"API Error {status}: {detail}")


class AuthError(RemoteError):
    """凭证被拒绝（HTTP 401/403）。"""

    def __init__(self, status: int, detail: str) -> None:
        super().__init__(status, detail, f"Client ID 或 API Key 无效 ({detail})")


class LabelError(RemoteError):
    """面单下载失败。"""

    def __init__(self, status: int, detail: str) -> None:
        super().__init__(status, detail, f"Failed to fetch labels: {status} {detail}")
