import json
import tempfile
import unittest
from pathlib import Path

from premarket.positions.ledger import PositionLedger


class TestPositionLedger(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "positions.json"

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_file_is_empty(self):
        ledger = PositionLedger(self.path)
        self.assertEqual(ledger.positions(), {})
        self.assertEqual(ledger.symbols(), [])

    def test_lots_append_and_persist(self):
        ledger = PositionLedger(self.path)
        ledger.add_lot("nvda", 10, 120.5)
        ledger.add_lot("NVDA", 5, 118.0)
        ledger.add_lot("AAPL", 1, 200.0)

        expected = {
            "NVDA": [{"qty": 10, "price": 120.5}, {"qty": 5, "price": 118.0}],
            "AAPL": [{"qty": 1, "price": 200.0}],
        }
        self.assertEqual(ledger.positions(), expected)
        self.assertEqual(json.loads(self.path.read_text()), expected)
        self.assertEqual(PositionLedger(self.path).positions(), expected)
        self.assertEqual(ledger.symbols(), ["NVDA", "AAPL"])

    def test_corrupt_file_loads_empty(self):
        self.path.write_text("{not json")
        self.assertEqual(PositionLedger(self.path).positions(), {})

        self.path.write_text("[1, 2, 3]")
        self.assertEqual(PositionLedger(self.path).positions(), {})

    def test_returned_book_is_a_copy(self):
        ledger = PositionLedger(self.path)
        book = ledger.add_lot("NVDA", 1, 1.0)
        book["NVDA"].append({"qty": 99, "price": 0})
        self.assertEqual(len(ledger.positions()["NVDA"]), 1)

    def test_empty_symbol_rejected(self):
        with self.assertRaises(ValueError):
            PositionLedger(self.path).add_lot("  ", 1, 1.0)


if __name__ == "__main__":
    unittest.main()
