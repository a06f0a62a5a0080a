import asyncio
import unittest

from stockview.errors import DuplicateIdError, ValidationError
from stockview.schemas import SortMode, ViewParameters
from stockview.stores.memory import InMemoryDocumentStore
from stockview.view import InventoryView

COLLECTION = "equipment"

DOCUMENTS = {
    "A1": {"name": "Filter", "brand": "Acme", "count": 5, "boughtPrice": 3, "soldPrice": 6},
    "B2": {"name": "Valve", "brand": "Bolt", "count": 2, "boughtPrice": 8, "soldPrice": 12},
    "A3": {"name": "Gasket", "brand": "Acme", "count": 9, "boughtPrice": 1, "soldPrice": 2},
}


class InventoryViewTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryDocumentStore({COLLECTION: DOCUMENTS})
        self.view = InventoryView(self.store, COLLECTION)
        self.view.mount()
        await self.view.mirror.wait_for_snapshot(timeout=1)

    async def asyncTearDown(self) -> None:
        self.view.unmount()

    async def test_loading_until_first_snapshot(self) -> None:
        view = InventoryView(self.store, COLLECTION)
        async with view:
            self.assertTrue(view.loading)
            self.assertEqual(view.projection.groups, ())
            await view.mirror.wait_for_snapshot(timeout=1)
            self.assertFalse(view.loading)
            self.assertEqual(view.projection.total, 3)
        self.assertEqual(self.store.active_subscriptions(COLLECTION), 1)

    async def test_projection_is_memoized(self) -> None:
        first = self.view.projection
        self.assertIs(self.view.projection, first)
        self.view.set_search_text("gas")
        self.assertEqual([r.id for r in self.view.projection.records()], ["A3"])

    async def test_clear_filters(self) -> None:
        unfiltered = self.view.projection
        dismissed = []
        self.view.parameters.on_clear(lambda: dismissed.append(True))

        self.view.set_brand_filter("Acme")
        self.view.set_max_count(5)
        self.view.set_search_text("x")
        self.view.set_sort_mode(SortMode.COUNT_DESC)
        self.assertEqual(self.view.projection.total, 0)

        self.view.clear_filters()

        self.assertEqual(self.view.filters, ViewParameters())
        self.assertEqual(self.view.projection, unfiltered)
        self.assertEqual(dismissed, [True])

    async def test_default_max_count_follows_new_records(self) -> None:
        self.assertEqual(self.view.projection.effective_max_count, 9)
        outcome = await self.view.add_item(
            self.view.update_draft(id="C4", name="Belt", brand="Conveyo", count="25")
        )
        self.assertTrue(outcome.ok)
        await self.view.mirror.wait_for_snapshot(lambda rs: any(r.id == "C4" for r in rs), timeout=1)

        projection = self.view.projection
        self.assertEqual(projection.observed_max_count, 25)
        self.assertEqual(projection.effective_max_count, 25)
        self.assertIn("C4", [r.id for r in projection.records()])

    async def test_add_success_resets_draft_and_closes_surface(self) -> None:
        self.view.open_add_surface()
        self.view.update_draft(id="C4", name="Belt")
        self.view.update_draft(brand="Conveyo", sold_price=4.5)
        self.assertEqual(self.view.new_item_draft.sold_price, "4.5")

        outcome = await self.view.add_item()

        self.assertTrue(outcome.ok)
        self.assertFalse(self.view.add_surface_visible)
        self.assertEqual(self.view.new_item_draft.id, "")
        # Not in the mirror until the subscription delivers it
        self.assertNotIn("C4", [r.id for r in self.view.mirror.records])
        await self.view.mirror.wait_for_snapshot(lambda rs: any(r.id == "C4" for r in rs), timeout=1)

    async def test_add_failure_keeps_draft_and_surface(self) -> None:
        self.view.open_add_surface()
        self.view.update_draft(id="", name="Bolt", brand="Acme")
        outcome = await self.view.add_item()
        self.assertIsInstance(outcome.error, ValidationError)
        self.assertEqual(self.store.write_calls, 0)
        self.assertTrue(self.view.add_surface_visible)
        self.assertEqual(self.view.new_item_draft.name, "Bolt")

        outcome = await self.view.add_item(self.view.update_draft(id="A1"))
        self.assertIsInstance(outcome.error, DuplicateIdError)
        self.assertTrue(self.view.add_surface_visible)

    async def test_update_selected_clears_selection(self) -> None:
        record = next(r for r in self.view.mirror.records if r.id == "B2")
        self.view.select(record)
        draft = self.view.edit_draft().model_copy(update={"count": "11"})

        outcome = await self.view.update_selected(draft)

        self.assertTrue(outcome.ok)
        self.assertIsNone(self.view.selected)
        records = await self.view.mirror.wait_for_snapshot(
            lambda rs: any(r.id == "B2" and r.count == 11 for r in rs), timeout=1
        )
        self.assertEqual(len(records), 3)

    async def test_update_cannot_change_id(self) -> None:
        record = next(r for r in self.view.mirror.records if r.id == "B2")
        self.view.select(record)
        draft = self.view.edit_draft().model_copy(update={"id": "Z9"})
        with self.assertRaises(ValueError):
            await self.view.update_selected(draft)

    async def test_failed_update_keeps_selection(self) -> None:
        record = next(r for r in self.view.mirror.records if r.id == "B2")
        self.view.select(record)
        self.store.fail_next("update")
        outcome = await self.view.update_selected()
        self.assertFalse(outcome.ok)
        self.assertIs(self.view.selected, record)

    async def test_delete_flow(self) -> None:
        record = next(r for r in self.view.mirror.records if r.id == "A1")
        self.view.select(record)
        confirmation = self.view.request_delete()
        confirmation.accept()

        outcome = await self.view.delete_item(confirmation)

        self.assertTrue(outcome.ok)
        self.assertIsNone(self.view.selected)
        await self.view.mirror.wait_for_snapshot(lambda rs: all(r.id != "A1" for r in rs), timeout=1)
        self.assertEqual([r.id for r in self.view.projection.records()], ["A3", "B2"])

    async def test_change_listeners(self) -> None:
        changes = []
        self.view.on_change(lambda v: changes.append(v.filters.search_text))
        self.view.set_search_text("val")
        self.store.emit_error(COLLECTION)
        await asyncio.sleep(0)
        self.assertEqual(changes, ["val", "val"])
        self.assertIsNotNone(self.view.error)


if __name__ == "__main__":
    unittest.main(verbosity=2)
