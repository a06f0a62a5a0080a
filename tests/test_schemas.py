import unittest

from pydantic import ValidationError as SchemaError

from stockview import utils
from stockview.schemas import EditDraft, NewItemDraft, Record, SortMode, ViewParameters


class ParsingTests(unittest.TestCase):
    def test_numeric_input_falls_back_to_zero(self) -> None:
        self.assertEqual(utils.parse_count(""), 0)
        self.assertEqual(utils.parse_count("abc"), 0)
        self.assertEqual(utils.parse_count(None), 0)
        self.assertEqual(utils.parse_count("-4"), 0)
        self.assertEqual(utils.parse_price("nan"), 0.0)
        self.assertEqual(utils.parse_price("inf"), 0.0)

    def test_numeric_input_parsed(self) -> None:
        self.assertEqual(utils.parse_count(" 12 "), 12)
        self.assertEqual(utils.parse_count("7.9"), 7)
        self.assertEqual(utils.parse_price("19.5"), 19.5)
        self.assertEqual(utils.parse_price(3), 3.0)

    def test_round_half_up(self) -> None:
        self.assertEqual(utils.round_half_up(2.5), 3)
        self.assertEqual(utils.round_half_up(2.49), 2)
        self.assertEqual(utils.round_half_up(0), 0)


class RecordTests(unittest.TestCase):
    def test_document_key_overrides_body_id(self) -> None:
        record = Record.from_document(
            "X1", {"id": "stale", "name": "Bolt", "brand": "Acme", "count": 3, "boughtPrice": 1, "soldPrice": 2}
        )
        self.assertEqual(record.id, "X1")
        self.assertEqual(record.bought_price, 1.0)
        self.assertEqual(record.sold_price, 2.0)

    def test_missing_fields_get_defaults(self) -> None:
        record = Record.from_document("X2", {"name": "Nut"})
        self.assertEqual(record.brand, "")
        self.assertEqual(record.count, 0)
        self.assertEqual(record.sold_price, 0.0)

    def test_empty_id_rejected(self) -> None:
        with self.assertRaises(SchemaError):
            Record(id="", name="Bolt", brand="Acme")

    def test_to_document_excludes_id(self) -> None:
        record = Record(id="X1", name="Bolt", brand="Acme", count=2, bought_price=1.5, sold_price=3)
        self.assertEqual(
            record.to_document(),
            {"name": "Bolt", "brand": "Acme", "count": 2, "boughtPrice": 1.5, "soldPrice": 3.0},
        )

    def test_record_is_immutable(self) -> None:
        record = Record(id="X1", name="Bolt", brand="Acme")
        with self.assertRaises(SchemaError):
            record.name = "Nut"  # type: ignore[misc]


class DraftTests(unittest.TestCase):
    def test_new_draft_defaults_to_empty_strings(self) -> None:
        draft = NewItemDraft()
        self.assertEqual(draft.model_dump(), dict.fromkeys(draft.model_dump(), ""))

    def test_edit_draft_from_record(self) -> None:
        record = Record(id="X1", name="Bolt", brand="Acme", count=4, bought_price=2.0, sold_price=2.5)
        draft = EditDraft.from_record(record)
        self.assertEqual(draft.id, "X1")
        self.assertEqual(draft.count, "4")
        self.assertEqual(draft.bought_price, "2")
        self.assertEqual(draft.sold_price, "2.5")


class ViewParametersTests(unittest.TestCase):
    def test_defaults(self) -> None:
        params = ViewParameters()
        self.assertEqual(params.search_text, "")
        self.assertIsNone(params.brand_filter)
        self.assertEqual(params.sort_mode, SortMode.NONE)
        self.assertIsNone(params.max_count)

    def test_negative_max_count_rejected(self) -> None:
        with self.assertRaises(SchemaError):
            ViewParameters(max_count=-1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
