"""
Unit Tests - Store Fetcher
"""
from contextlib import nullcontext
from datetime import timedelta

from multistore_dashboard.data_sources.base import Page
from multistore_dashboard.exceptions import AuthError, TransportError
from multistore_dashboard.pipeline.fetcher import (
    MAX_OFFSET,
    fetch_all_for_store,
    iter_pages,
)


class EndlessPager:
    """Always reports another page."""

    def __init__(self, order):
        self.name = "endless"
        self.offsets = []
        self.order = order

    def for_store(self):
        return nullcontext(self)

    def fetch_page(self, credential, window, offset, limit):
        self.offsets.append(offset)
        return Page(orders=(self.order,), has_more=True)


class TestFetchAllForStore:
    """Tests for fetch_all_for_store"""

    def test_collects_every_page_and_stamps_store(self, fake_pager, store_x, make_order, fixed_now):
        """Orders from all pages are returned, each tagged with the store id"""
        first = Page(orders=(make_order(), make_order()), has_more=True)
        second = Page(orders=(make_order(),), has_more=False)
        fake_pager.pages["X"] = [first, second]

        result = fetch_all_for_store(fake_pager, store_x, 15, now=fixed_now)

        assert result.ok
        assert len(result.orders) == 3
        assert {order.source_store_id for order in result.orders} == {"X"}
        assert [call[1] for call in fake_pager.calls] == [0, 100]
        assert fake_pager.store_scopes == 1

    def test_window_is_computed_once(self, fake_pager, store_x, make_order, fixed_now):
        """Every page request uses the same window"""
        fake_pager.pages["X"] = [
            Page(orders=(make_order(),), has_more=True),
            Page(orders=(make_order(),), has_more=True),
            Page(orders=(), has_more=False),
        ]

        fetch_all_for_store(fake_pager, store_x, 15, now=fixed_now)

        assert len(set(fake_pager.windows)) == 1
        window = fake_pager.windows[0]
        assert window.to == fixed_now
        assert window.to - window.since == timedelta(days=15)

    def test_failure_discards_partial_results(self, fake_pager, store_x, make_order, fixed_now):
        """A failing page drops already collected orders and reports the store"""
        fake_pager.pages["X"] = [
            Page(orders=(make_order(),), has_more=True),
            AuthError(401, "bad key"),
        ]

        result = fetch_all_for_store(fake_pager, store_x, 15, now=fixed_now)

        assert not result.ok
        assert result.orders == ()
        assert result.failure.store_id == "X"
        assert "bad key" in result.failure.message

    def test_transport_failure_is_reported(self, fake_pager, store_x, fixed_now):
        """Connection errors become failure results instead of raising"""
        fake_pager.pages["X"] = [TransportError("connection refused")]

        result = fetch_all_for_store(fake_pager, store_x, 15, now=fixed_now)

        assert result.failure is not None
        assert "connection refused" in str(result.failure)

    def test_safety_cap_ends_pagination(self, store_x, make_order, fixed_now):
        """A store that never stops paging is cut off after the offset cap"""
        pager = EndlessPager(make_order())

        result = fetch_all_for_store(pager, store_x, 15, now=fixed_now)

        assert result.ok
        assert pager.offsets[-1] == MAX_OFFSET
        assert len(result.orders) == MAX_OFFSET // 100 + 1


class TestIterPages:
    """Tests for iter_pages"""

    def test_pages_are_lazy(self, store_x, make_order, fixed_now):
        """Nothing is fetched until the iterator is consumed"""
        pager = EndlessPager(make_order())
        pages = iter_pages(pager, store_x, None)

        assert pager.offsets == []
        next(pages)
        next(pages)
        assert pager.offsets == [0, 100]

    def test_stops_on_last_page(self, fake_pager, store_x, make_order):
        """Pagination ends when has_more is false"""
        fake_pager.pages["X"] = [Page(orders=(make_order(),), has_more=False)]

        pages = list(iter_pages(fake_pager, store_x, None))

        assert len(pages) == 1
        assert len(fake_pager.calls) == 1
