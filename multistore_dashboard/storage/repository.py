from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, FrozenSet, Iterable, List, Optional

from ..config import StoreCredential
from ..exceptions import ConfigError

CREDENTIALS_KEY = "ozon_creds_multi"
LEGACY_CREDENTIALS_KEY = "ozon_creds"
PACKED_ORDERS_KEY = "ozon_packed_orders"


class SQLiteStateRepository:
    """基于 SQLite 的本地键值状态仓储，值以 JSON 文本保存。"""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path)

    def initialize(self) -> None:
        """初始化数据库文件及表结构。"""

        if not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        with sqlite3.connect(self._db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[Any]:
        """读取键对应的 JSON 值，不存在时返回 None。"""

        with sqlite3.connect(self._db_path) as conn:
            row = conn.execute("SELECT value FROM state WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError as exc:
            raise ConfigError(f"本地状态 {key} 已损坏") from exc

    def set(self, key: str, value: Any) -> None:
        updated_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        with sqlite3.connect(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO state (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, json.dumps(value, ensure_ascii=False), updated_at),
            )

    def delete(self, *keys: str) -> None:
        with sqlite3.connect(self._db_path) as conn:
            conn.executemany("DELETE FROM state WHERE key = ?", [(key,) for key in keys])

    def load_credentials(self) -> List[StoreCredential]:
        """读取店铺凭证；多店铺键缺失时回退到旧版单店铺键。"""

        payload = self.get(CREDENTIALS_KEY)
        if payload is None:
            legacy = self.get(LEGACY_CREDENTIALS_KEY)
            return [StoreCredential.from_dict(legacy)] if legacy else []
        # 旧版本曾在多店铺键下直接保存单个对象。
        if isinstance(payload, dict):
            return [StoreCredential.from_dict(payload)]
        if not isinstance(payload, list):
            raise ConfigError(f"本地状态 {CREDENTIALS_KEY} 格式无效")
        return [StoreCredential.from_dict(item) for item in payload]

    def save_credentials(self, credentials: Iterable[StoreCredential]) -> None:
        self.set(CREDENTIALS_KEY, [credential.to_dict() for credential in credentials])

    def clear_credentials(self) -> None:
        self.delete(LEGACY_CREDENTIALS_KEY, CREDENTIALS_KEY)

    def load_packed(self) -> FrozenSet[str]:
        payload = self.get(PACKED_ORDERS_KEY)
        if payload is None:
            return frozenset()
        if not isinstance(payload, list):
            raise ConfigError(f"本地状态 {PACKED_ORDERS_KEY} 格式无效")
        return frozenset(str(item) for item in payload)

    def save_packed(self, packed: Iterable[str]) -> None:
        self.set(PACKED_ORDERS_KEY, sorted(packed))
