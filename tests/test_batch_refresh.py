# tests/test_batch_refresh.py

"""Tests for BatchRefreshJob against a temporary SQLite store."""

import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

from price_watch.config.settings import Settings
from price_watch.errors import TransientFetchError
from price_watch.models.product import Product
from price_watch.models.scrape_result import ScrapeResult
from price_watch.services.batch_refresh import BatchRefreshJob
from price_watch.services.product_service import ProductService
from price_watch.services.scrape_orchestrator import ScrapeOrchestrator
from price_watch.storage.product_store import ProductStore

BROKEN_URL = "https://loja.com/broken-product"


class _PriceBoard:
    """Strategy serving scripted prices per URL; BROKEN_URL always fails."""

    def __init__(self, prices: dict[str, float]) -> None:
        self.prices = prices

    def extract(
        self, url: str, store: str | None = None, **_: Any,
    ) -> ScrapeResult:
        if url == BROKEN_URL or url not in self.prices:
            raise TransientFetchError("HTTP 503", url=url, stage="test")
        return ScrapeResult(name="Scraped", current_price=self.prices[url])


def _orchestrator_factory(prices: dict[str, float]) -> Any:
    def factory() -> ScrapeOrchestrator:
        board = _PriceBoard(prices)
        return ScrapeOrchestrator({"remote": board, "direct_page": board})

    return factory


class _RefreshTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.store = ProductStore(db_path=Path(self.tmp_dir) / "t.db")

    def tearDown(self) -> None:
        self.store.close()

    def _add(
        self,
        name: str,
        url: str,
        price: float,
        last_checked: datetime | None = None,
    ) -> int:
        pid = self.store.insert_product(
            Product(
                name=name,
                url=url,
                current_price=price,
                user_id="U",
                last_checked=last_checked,
            )
        )
        self.store.append_price_history(pid, price)
        return pid

    def _reject_history_writes(self) -> None:
        self.store._conn.execute(
            "CREATE TRIGGER reject_history BEFORE INSERT ON price_history "
            "BEGIN SELECT RAISE(ABORT, 'disk full'); END"
        )


class TestEndToEnd(_RefreshTestCase):
    """100 -> 90 -> 90 over two refresh runs."""

    async def test_drop_then_steady(self) -> None:
        url = "https://loja.com/cafeteira"
        pid = self._add("Cafeteira", url, 100.0)
        job = BatchRefreshJob(
            self.store, _orchestrator_factory({url: 90.0})
        )

        summary = await job.run()
        product = self.store.get_product(pid)
        assert product is not None
        self.assertEqual(summary.updated, 1)
        self.assertTrue(summary.results[0].price_changed)
        self.assertEqual(product.current_price, 90.0)
        self.assertEqual(product.previous_price, 100.0)
        self.assertTrue(product.is_on_sale)
        self.assertEqual(
            [h.price for h in product.price_history], [100.0, 90.0]
        )

        summary = await job.run()
        product = self.store.get_product(pid)
        assert product is not None
        self.assertFalse(summary.results[0].price_changed)
        self.assertEqual(product.previous_price, 100.0)
        self.assertEqual(len(product.price_history), 2)


class TestIsolation(_RefreshTestCase):
    """One failing product never affects the others."""

    async def test_middle_item_fails(self) -> None:
        base = datetime(2026, 10, 1)
        a = self._add("A", "https://loja.com/a", 50.0, base)
        b = self._add("B", BROKEN_URL, 60.0, base + timedelta(hours=1))
        c = self._add(
            "C", "https://loja.com/c", 70.0, base + timedelta(hours=2)
        )
        prices = {"https://loja.com/a": 45.0, "https://loja.com/c": 70.0}

        summary = await BatchRefreshJob(
            self.store, _orchestrator_factory(prices)
        ).run()

        self.assertEqual(len(summary.results), 3)
        by_id = {r.product_id: r for r in summary.results}
        self.assertTrue(by_id[a].success)
        self.assertTrue(by_id[a].price_changed)
        self.assertFalse(by_id[b].success)
        self.assertTrue(by_id[b].estimated)
        self.assertTrue(by_id[c].success)
        self.assertFalse(by_id[c].price_changed)
        self.assertEqual(summary.updated, 2)
        self.assertEqual(summary.failed, 1)

    async def test_placeholder_never_overwrites_price(self) -> None:
        pid = self._add("B", BROKEN_URL, 60.0)
        await BatchRefreshJob(self.store, _orchestrator_factory({})).run()

        product = self.store.get_product(pid)
        assert product is not None
        self.assertEqual(product.current_price, 60.0)
        self.assertIsNotNone(product.last_checked)
        self.assertEqual(len(product.price_history), 1)

    async def test_invalid_product_skipped(self) -> None:
        pid = self._add("Broken", "  ", 10.0)
        summary = await BatchRefreshJob(
            self.store, _orchestrator_factory({})
        ).run()
        self.assertFalse(summary.results[0].success)
        self.assertIn("missing url", summary.results[0].error or "")
        self.assertEqual(summary.results[0].product_id, pid)

    async def test_product_without_id_is_not_scraped(self) -> None:
        factory = MagicMock()
        outcome = BatchRefreshJob(self.store, factory)._refresh_one(
            Product(name="X", url="https://loja.com/x", current_price=1.0)
        )
        self.assertFalse(outcome.success)
        self.assertEqual(outcome.error, "invalid product: missing id")
        factory.assert_not_called()

    async def test_unexpected_error_captured(self) -> None:
        self._add("A", "https://loja.com/a", 50.0)

        def exploding_factory() -> ScrapeOrchestrator:
            raise RuntimeError("boom")

        summary = await BatchRefreshJob(
            self.store, exploding_factory
        ).run()
        self.assertFalse(summary.results[0].success)
        self.assertIn("boom", summary.results[0].error or "")

    async def test_persistence_error_captured(self) -> None:
        url = "https://loja.com/a"
        pid = self._add("A", url, 50.0)
        self.store.delete_product(pid)
        job = BatchRefreshJob(
            self.store, _orchestrator_factory({url: 40.0})
        )
        product = Product(name="A", url=url, current_price=50.0, id=pid)

        outcome = job._refresh_one(product)
        self.assertFalse(outcome.success)
        self.assertIn(f"Product {pid} not found", outcome.error or "")


class TestBatchSelection(_RefreshTestCase):

    async def test_batch_size_and_staleness(self) -> None:
        base = datetime(2026, 10, 1)
        prices: dict[str, float] = {}
        ids: list[int] = []
        for i in range(5):
            url = f"https://loja.com/p{i}"
            prices[url] = 10.0
            ids.append(
                self._add(f"P{i}", url, 10.0, base - timedelta(days=i))
            )

        summary = await BatchRefreshJob(
            self.store,
            _orchestrator_factory(prices),
            batch_size=2,
            max_workers=1,
        ).run()

        self.assertEqual(
            {r.product_id for r in summary.results}, {ids[4], ids[3]}
        )

    async def test_target_reached_reported(self) -> None:
        url = "https://loja.com/a"
        pid = self._add("A", url, 100.0)
        self.store.update_product(pid, {"price_target": 80.0})

        summary = await BatchRefreshJob(
            self.store, _orchestrator_factory({url: 79.9})
        ).run()
        self.assertTrue(summary.results[0].target_reached)

    async def test_empty_store(self) -> None:
        summary = await BatchRefreshJob(
            self.store, _orchestrator_factory({})
        ).run()
        self.assertEqual(summary.updated, 0)
        self.assertEqual(summary.results, [])


class TestAtomicWrites(_RefreshTestCase):

    async def test_failed_history_write_leaves_product_unchanged(
        self,
    ) -> None:
        url = "https://loja.com/a"
        checked = datetime(2026, 10, 1)
        pid = self._add("A", url, 100.0, checked)
        self._reject_history_writes()

        summary = await BatchRefreshJob(
            self.store, _orchestrator_factory({url: 90.0})
        ).run()

        self.assertFalse(summary.results[0].success)
        self.assertIn("disk full", summary.results[0].error or "")
        product = self.store.get_product(pid)
        assert product is not None
        self.assertEqual(product.current_price, 100.0)
        self.assertIsNone(product.previous_price)
        self.assertEqual(product.last_checked, checked)
        self.assertEqual([h.price for h in product.price_history], [100.0])

    async def test_retry_after_failure_records_the_move(self) -> None:
        url = "https://loja.com/a"
        pid = self._add("A", url, 100.0)
        self._reject_history_writes()
        job = BatchRefreshJob(self.store, _orchestrator_factory({url: 90.0}))
        await job.run()

        self.store._conn.execute("DROP TRIGGER reject_history")
        summary = await job.run()

        self.assertTrue(summary.results[0].price_changed)
        product = self.store.get_product(pid)
        assert product is not None
        self.assertEqual(
            [h.price for h in product.price_history], [100.0, 90.0]
        )


class TestEstimatedProducts(_RefreshTestCase):
    """Products added from a placeholder result."""

    def _add_estimated(self, url: str) -> int:
        orchestrator = MagicMock()
        orchestrator.scrape.return_value = ScrapeResult(
            name="Fone Jbl",
            current_price=Settings.PLACEHOLDER_PRICE,
            url=url,
            was_estimated=True,
            estimate_reason="All 2 stages failed",
        )
        added = ProductService(
            self.store, orchestrator
        ).scrape_and_add_product("U", url=url)
        assert added.product is not None and added.product.id is not None
        return added.product.id

    async def test_first_observed_price_replaces_placeholder(
        self,
    ) -> None:
        url = "https://loja.com/fone-jbl"
        pid = self._add_estimated(url)

        summary = await BatchRefreshJob(
            self.store, _orchestrator_factory({url: 199.9})
        ).run()

        self.assertTrue(summary.results[0].success)
        product = self.store.get_product(pid)
        assert product is not None
        self.assertEqual(product.current_price, 199.9)
        self.assertIsNone(product.previous_price)
        self.assertEqual(product.price_change, 0.0)
        self.assertFalse(product.is_estimated)
        self.assertEqual([h.price for h in product.price_history], [199.9])

    async def test_still_estimated_after_failed_refresh(self) -> None:
        pid = self._add_estimated(BROKEN_URL)
        await BatchRefreshJob(self.store, _orchestrator_factory({})).run()

        product = self.store.get_product(pid)
        assert product is not None
        self.assertTrue(product.is_estimated)
        self.assertEqual(product.price_history, [])
