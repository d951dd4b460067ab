"""
Test Suite Configuration
"""
from contextlib import nullcontext
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from multistore_dashboard.config import StoreCredential
from multistore_dashboard.data_sources.base import (
    AnalyticsData,
    FetchWindow,
    FinancialData,
    LineItem,
    Order,
    Page,
)


class FakePager:
    """In-memory page source keyed by client id."""

    def __init__(self, pages: Optional[Dict[str, Sequence[object]]] = None) -> None:
        self.name = "fake"
        self.pages: Dict[str, Sequence[object]] = pages or {}
        self.calls: List[tuple] = []
        self.windows: List[FetchWindow] = []
        self.labels: Dict[str, object] = {}
        self.label_calls: List[tuple] = []
        self.store_scopes = 0

    def for_store(self):
        self.store_scopes += 1
        return nullcontext(self)

    def fetch_page(self, credential, window, offset, limit):
        self.calls.append((credential.client_id, offset, limit))
        self.windows.append(window)
        pages = self.pages.get(credential.client_id, [])
        index = offset // limit
        if index >= len(pages):
            return Page(orders=(), has_more=False)
        page = pages[index]
        if isinstance(page, Exception):
            raise page
        return page

    def fetch_labels(self, credential, posting_numbers):
        self.label_calls.append((credential.client_id, tuple(posting_numbers)))
        result = self.labels.get(credential.client_id, b"%PDF-1.4")
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def make_item() -> Callable[..., LineItem]:
    def _make(
        offer_id: str = "SKU-1",
        *,
        name: str = "Phone case",
        price: str = "100.00",
        currency: str = "RUB",
        quantity: int = 1,
        sku: int = 1001,
    ) -> LineItem:
        return LineItem(
            name=name,
            offer_id=offer_id,
            price=price,
            currency_code=currency,
            quantity=quantity,
            sku=sku,
        )

    return _make


@pytest.fixture
def make_order(make_item) -> Callable[..., Order]:
    counter = {"n": 0}

    def _make(
        created: str = "2024-01-01T10:00:00+00:00",
        *,
        items: Optional[Sequence[LineItem]] = None,
        posting_number: Optional[str] = None,
        payouts: Optional[Sequence[float]] = None,
        region: Optional[str] = None,
        store: Optional[str] = None,
        status: str = "awaiting_packaging",
    ) -> Order:
        counter["n"] += 1
        return Order(
            posting_number=posting_number or f"P-{counter['n']:04d}",
            order_id=counter["n"],
            status=status,
            in_process_at=datetime.fromisoformat(created),
            products=tuple(items) if items is not None else (make_item(),),
            analytics_data=AnalyticsData(region=region) if region else None,
            financial_data=FinancialData(product_prices=tuple(payouts)) if payouts is not None else None,
            source_store_id=store,
        )

    return _make


@pytest.fixture
def fake_pager() -> FakePager:
    return FakePager()


@pytest.fixture
def store_x() -> StoreCredential:
    return StoreCredential(client_id="X", api_key="key-x")


@pytest.fixture
def store_y() -> StoreCredential:
    return StoreCredential(client_id="Y", api_key="key-y")


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
