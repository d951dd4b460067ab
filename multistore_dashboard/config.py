"""多店铺仪表盘的配置模型，支持环境变量加载。"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .exceptions import ConfigError

_CREDENTIAL_SEPARATORS = re.compile(r"[\s,]+")


@dataclass(frozen=True)
class StoreCredential:
    """
    单个 Ozon 店铺的访问凭证。

    属性:
        client_id (str): 店铺的 Client-Id，同时作为店铺标识。
        api_key (str): 与 Client-Id 配套的 Api-Key。
    """

    client_id: str
    api_key: str

    @property
    def store_id(self) -> str:
        return self.client_id

    def to_dict(self) -> Dict[str, str]:
        return {"clientId": self.client_id, "apiKey": self.api_key}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "StoreCredential":
        """
        功能说明:
            从持久化的 JSON 结构还原凭证。
        参数:
            payload (Dict[str, Any]): 形如 `{"clientId": ..., "apiKey": ...}` 的字典。
        返回:
            StoreCredential: 凭证实例。
        """
        try:
            client_id = str(payload["clientId"]).strip()
            api_key = str(payload["apiKey"]).strip()
        except (KeyError, TypeError) as exc:
            raise ConfigError(f"无效的店铺凭证: {payload!r}") from exc
        if not client_id or not api_key:
            raise ConfigError(f"店铺凭证缺少 clientId 或 apiKey: {payload!r}")
        return cls(client_id=client_id, api_key=api_key)


def parse_credentials_text(text: str) -> List[StoreCredential]:
    """
    功能说明:
        解析批量录入的凭证文本，每行一个店铺，Client-Id 与 Api-Key 之间可用逗号、制表符或空格分隔。
    参数:
        text (str): 用户粘贴的多行文本。
    返回:
        List[StoreCredential]: 按行顺序解析出的凭证，字段不足的行会被忽略。
    """
    credentials: List[StoreCredential] = []
    for line in text.splitlines():
        parts = [part for part in _CREDENTIAL_SEPARATORS.split(line.strip()) if part]
        if len(parts) < 2:
            continue
        credentials.append(StoreCredential(client_id=parts[0], api_key=parts[1]))
    return credentials


def credentials_from_env(prefix: str = "OZON_") -> List[StoreCredential]:
    """
    功能说明:
        从环境变量读取单店铺凭证，便于在未导入凭证时直接运行。
    参数:
        prefix (str): 变量名前缀。
    返回:
        List[StoreCredential]: 变量齐全时返回单元素列表，否则为空列表。
    """
    client_id = os.getenv(f"{prefix}CLIENT_ID", "").strip()
    api_key = os.getenv(f"{prefix}API_KEY", "").strip()
    if not client_id or not api_key:
        return []
    return [StoreCredential(client_id=client_id, api_key=api_key)]


@dataclass
class DashboardConfig:
    """
    定义拉取与统计层面的关键参数。

    属性:
        window_days (int): 默认回溯天数。
        base_url (str): Ozon Seller API 地址。
        http_timeout (float): 单次请求超时秒数。
    """

    window_days: int = 15
    base_url: str = "https://api-seller.ozon.ru"
    http_timeout: float = 30.0

    @classmethod
    def from_env(cls, prefix: str = "DASHBOARD_") -> "DashboardConfig":
        """
        功能说明:
            从环境变量加载仪表盘行为配置。
        参数:
            prefix (str): 环境变量前缀。
        返回:
            DashboardConfig: 包含窗口大小、接口地址及超时的实例。
        """
        try:
            window_days = int(os.getenv(f"{prefix}WINDOW_DAYS", 15))
            http_timeout = float(os.getenv(f"{prefix}HTTP_TIMEOUT", 30))
        except ValueError as exc:
            raise ConfigError(f"仪表盘配置无法解析: {exc}") from exc
        base_url = os.getenv(f"{prefix}BASE_URL", "https://api-seller.ozon.ru")
        return cls(
            window_days=window_days,
            base_url=base_url.rstrip("/"),
            http_timeout=http_timeout,
        )


@dataclass
class StorageConfig:
    """
    描述本地状态（凭证、打包标记）的存放位置。

    属性:
        db_path (str): SQLite 文件路径，默认位于当前目录。
    """

    db_path: str = "multistore_dashboard.sqlite3"

    @classmethod
    def from_env(cls, prefix: str = "STORAGE_") -> "StorageConfig":
        return cls(db_path=os.getenv(f"{prefix}DB_PATH", "multistore_dashboard.sqlite3"))


@dataclass
class AppConfig:
    """
    顶层组合配置，聚合仪表盘、存储与 LLM 设置。

    属性:
        dashboard (DashboardConfig): 拉取与统计参数。
        storage (StorageConfig): 本地状态存储设置。
        openai_api_key (Optional[str]): OpenAI API Key，缺省时销售日报降级为占位文本。
        openai_model (str): 默认模型名称。
        openai_temperature (float): 生成温度。
    """

    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-5-mini"
    openai_temperature: float = 0.0

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        功能说明:
            统一从环境变量载入所有子配置。
        返回:
            AppConfig: 完整的应用配置实例。
        """
        return cls(
            dashboard=DashboardConfig.from_env(),
            storage=StorageConfig.from_env(),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-5-mini"),
            openai_temperature=float(os.getenv("OPENAI_TEMPERATURE", "0")),
        )
