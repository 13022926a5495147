import unittest
from datetime import date, datetime
from decimal import Decimal

from welfare.errors import ValidationError
from welfare.utils.parsers import parse_date, parse_int, parse_money, pick


class ParserTests(unittest.TestCase):
    def test_dates(self):
        self.assertEqual(parse_date("2024-02-29", "d"), date(2024, 2, 29))
        self.assertEqual(parse_date("2024-02-29T18:30:00+05:30", "d"), date(2024, 2, 29))
        self.assertEqual(parse_date(datetime(2024, 1, 2, 3, 4), "d"), date(2024, 1, 2))
        for bad in ("", None, "2024-02-30", "yesterday"):
            with self.assertRaises(ValidationError) as ctx:
                parse_date(bad, "startDate")
            self.assertIn("startDate", ctx.exception.errors)

    def test_money(self):
        self.assertEqual(parse_money("1000", "a"), Decimal("1000.00"))
        self.assertEqual(parse_money(10.005, "a"), Decimal("10.01"))
        self.assertEqual(parse_money(0, "a", allow_zero=True), Decimal("0.00"))
        for bad in (0, -1, "NaN", "Infinity", "ten", True, None):
            with self.assertRaises(ValidationError):
                parse_money(bad, "amount")

    def test_sub_cent_amount_rounds_to_zero_and_is_rejected(self):
        for tiny in ("0.001", "0.004", 0.0049):
            with self.assertRaises(ValidationError) as ctx:
                parse_money(tiny, "amountPerPayment")
            self.assertIn("amountPerPayment", ctx.exception.errors)
        self.assertEqual(parse_money("0.001", "a", allow_zero=True), Decimal("0.00"))
        self.assertEqual(parse_money("0.005", "a"), Decimal("0.01"))

    def test_ints(self):
        self.assertEqual(parse_int("60", "n", minimum=1, maximum=60), 60)
        self.assertEqual(parse_int(3.0, "n"), 3)
        for bad in (61, 0, 2.5, "six", False):
            with self.assertRaises(ValidationError):
                parse_int(bad, "n", minimum=1, maximum=60)

    def test_pick(self):
        self.assertEqual(pick({"start_date": 1}, "startDate", "start_date"), 1)
        self.assertEqual(pick({}, "a", default=5), 5)


if __name__ == "__main__":
    unittest.main()
