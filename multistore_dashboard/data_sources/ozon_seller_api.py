"""基于 Ozon Seller API 的分页订单数据源与面单下载。"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, Optional, Sequence

import requests

from ..config import DashboardConfig, StoreCredential
from ..exceptions import AuthError, LabelError, ParseError, RemoteError, TransportError
from .base import FetchWindow, Order, Page

logger = logging.getLogger(__name__)

# 超过 100 时接口容易返回 Bad Request 或超时，固定为该值。
PAGE_SIZE = 100

POSTING_LIST_PATH = "/v3/posting/fbs/list"
PACKAGE_LABEL_PATH = "/v2/posting/fbs/package-label"


def _format_timestamp(value: datetime) -> str:
    utc_value = value.astimezone(timezone.utc)
    return utc_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_posting_request(window: FetchWindow, offset: int, limit: int) -> Dict[str, Any]:
    """
    功能说明:
        构造 `/v3/posting/fbs/list` 的请求体。
    参数:
        window (FetchWindow): 查询时间窗口。
        offset (int): 分页偏移量。
        limit (int): 每页数量。
    返回:
        Dict[str, Any]: 可直接 JSON 序列化的请求体。
    """
    return {
        "dir": "DESC",
        "filter": {
            "since": _format_timestamp(window.since),
            "to": _format_timestamp(window.to),
        },
        "limit": limit,
        "offset": offset,
        "with": {
            "analytics_data": True,
            "barcodes": False,
            "financial_data": True,
            "translit": True,
        },
    }


def extract_error_detail(response: requests.Response) -> str:
    """
    功能说明:
        从错误响应体中提取可读信息，依次尝试 `message`、`error.message`、完整 JSON，最后退回原始文本。
    参数:
        response (requests.Response): 非 2xx 响应。
    返回:
        str: 错误详情。
    """
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        if body.get("message"):
            return str(body["message"])
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return json.dumps(body, ensure_ascii=False)


class OzonSellerApiPager:
    """
    Ozon Seller API 的分页订单数据源。

    不做任何重试；超时取自配置，`requests` 本身没有默认超时。
    `requests.Session` 不保证线程安全，因此每个店铺通过 :meth:`for_store`
    使用独立的会话；未绑定会话时每个请求临时创建并关闭一个会话。
    """

    def __init__(
        self,
        config: Optional[DashboardConfig] = None,
        *,
        session: Optional[requests.Session] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.name = "ozon_seller_api"
        self._config = config or DashboardConfig()
        self._session = session
        self._session_factory = session_factory

    @contextmanager
    def for_store(self) -> Iterator["OzonSellerApiPager"]:
        """
        功能说明:
            为单个店铺打开独立会话，同一店铺的全部分页复用该会话的连接池。
        返回:
            Iterator[OzonSellerApiPager]: 绑定新会话的数据源，退出时关闭会话。
        """
        session = self._session_factory()
        try:
            yield OzonSellerApiPager(
                self._config,
                session=session,
                session_factory=self._session_factory,
            )
        finally:
            session.close()

    def _headers(self, credential: StoreCredential) -> Dict[str, str]:
        return {
            "Client-Id": credential.client_id,
            "Api-Key": credential.api_key,
            "Content-Type": "application/json",
        }

    def _post(self, path: str, credential: StoreCredential, body: Dict[str, Any]) -> requests.Response:
        if self._session is None:
            with self._session_factory() as session:
                return self._send(session, path, credential, body)
        return self._send(self._session, path, credential, body)

    def _send(
        self,
        session: requests.Session,
        path: str,
        credential: StoreCredential,
        body: Dict[str, Any],
    ) -> requests.Response:
        url = f"{self._config.base_url}{path}"
        try:
            return session.post(
                url,
                headers=self._headers(credential),
                data=json.dumps(body),
                timeout=self._config.http_timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"连接失败: {exc}") from exc

    def fetch_page(
        self,
        credential: StoreCredential,
        window: FetchWindow,
        offset: int,
        limit: int = PAGE_SIZE,
    ) -> Page:
        """
        功能说明:
            拉取一页订单。
        参数:
            credential (StoreCredential): 店铺凭证。
            window (FetchWindow): 查询窗口。
            offset (int): 分页偏移量。
            limit (int): 每页数量。
        返回:
            Page: 本页订单及 `has_more` 标识。
        异常:
            AuthError: 凭证被拒绝（401/403）。
            RemoteError: 其他非 2xx 响应。
            TransportError: 连接层失败。
            ParseError: 响应体结构不符合预期。
        """
        logger.debug("拉取店铺 %s 订单 offset=%s limit=%s", credential.client_id, offset, limit)
        response = self._post(POSTING_LIST_PATH, credential, build_posting_request(window, offset, limit))
        if not response.ok:
            detail = extract_error_detail(response)
            if response.status_code in (401, 403):
                raise AuthError(response.status_code, detail)
            raise RemoteError(response.status_code, detail)

        try:
            result = response.json()["result"]
            postings = result.get("postings") or []
            has_more = bool(result.get("has_next", False))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise ParseError(f"订单列表响应无法解析: {response.text[:200]}") from exc

        return Page(
            orders=tuple(Order.from_payload(item) for item in postings),
            has_more=has_more,
        )

    def fetch_labels(self, credential: StoreCredential, posting_numbers: Sequence[str]) -> bytes:
        """
        功能说明:
            下载一批发货单的面单 PDF。失败直接抛出，不生成替代内容。
        参数:
            credential (StoreCredential): 发货单所属店铺的凭证。
            posting_numbers (Sequence[str]): 发货单号列表。
        返回:
            bytes: PDF 二进制内容。
        """
        response = self._post(
            PACKAGE_LABEL_PATH,
            credential,
            {"posting_number": list(posting_numbers)},
        )
        if not response.ok:
            detail = extract_error_detail(response)
            if response.status_code in (401, 403):
                raise AuthError(response.status_code, detail)
            raise LabelError(response.status_code, detail)
        return response.content
