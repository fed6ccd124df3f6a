#!/usr/bin/env python3
"""
SQL Order Store Test Suite

PURPOSE:
    Exercises the SQLAlchemy store against an in-memory SQLite database
    seeded from the bundled catalog CSV.

TEST COVERAGE:
    - Seeding and catalog / customer reads
    - Appending orders for known, new and unspecified customers
    - Order history read-back
    - Orders take stock in the same transaction, clamped at zero
    - Stock updates, atomic adjustments and missing items
    - Cancellation restores stock and reports the auto flag
    - Database errors surface as ProviderUnavailable

USAGE:
    Run from project root: python -m pytest tests/test_store.py -v
"""

import unittest

from orderbot.data.database import create_tables, make_engine, make_session_factory
from orderbot.data.populate_db import populate_catalog
from orderbot.data.store import SqlOrderStore
from orderbot.nlu.normalizer import normalize
from orderbot.schemas.order_models import (
    ConfidenceTier,
    CustomerKind,
    LineItem,
    MatchQuality,
    OrderIntent,
    OrderStatus,
    PaymentStatus,
    ResolvedCustomer,
)
from orderbot.utils.errors import ProviderUnavailable


def make_store():
    engine = make_engine("sqlite://")
    factory = make_session_factory(engine)
    populate_catalog(session_factory=factory, bind=engine)
    return SqlOrderStore(session_factory=factory)


def intent_for(store, customer, *lines, payment=PaymentStatus.paid):
    """``lines`` are (item_id, quantity) pairs priced from the stored catalog."""
    catalog = {e.id: e for e in store.get_catalog()}
    items = [
        LineItem(entry=catalog[item_id], quantity=qty, unit_price=catalog[item_id].price, quality=MatchQuality.exact)
        for item_id, qty in lines
    ]
    intent = OrderIntent(customer=customer, items=items, payment=payment, confidence=ConfidenceTier.high)
    intent.total = intent.compute_total()
    return intent


class TestSqlOrderStore(unittest.TestCase):

    def setUp(self):
        self.store = make_store()
        self.somchai = next(p for p in self.store.get_customers() if p.name == "Mr. Somchai")

    def known(self):
        return ResolvedCustomer(kind=CustomerKind.known, name=self.somchai.name, profile=self.somchai,
                                similarity=1.0)

    def test_seeded_catalog(self):
        catalog = self.store.get_catalog()
        self.assertEqual(len(catalog), 10)
        ice_tube = catalog[0]
        self.assertEqual((ice_tube.id, ice_tube.name, ice_tube.price, ice_tube.stock), ("1", "Ice Tube", 60, 10))
        self.assertEqual(ice_tube.unit, "bag")
        self.assertEqual(ice_tube.sku, "ICE-TUBE")

    def test_seeding_is_skipped_when_catalog_exists(self):
        engine = make_engine("sqlite://")
        factory = make_session_factory(engine)
        self.assertEqual(populate_catalog(session_factory=factory, bind=engine), 10)
        self.assertEqual(populate_catalog(session_factory=factory, bind=engine), 0)

    def test_customers(self):
        customers = self.store.get_customers()
        self.assertEqual([c.name for c in customers], ["Mr. Somchai", "Khun Malee", "Aunt Noi"])
        self.assertEqual(customers[0].normalized_name, normalize("Mr. Somchai"))

    def test_append_and_history(self):
        first = self.store.append_order(intent_for(self.store, self.known(), ("1", 2), ("4", 6)))
        second = self.store.append_order(intent_for(self.store, self.known(), ("4", 3),
                                                    payment=PaymentStatus.unpaid))
        self.assertNotEqual(first, second)

        history = self.store.get_order_history(10)
        self.assertEqual([o.id for o in history], [second, first])
        latest = history[0]
        self.assertEqual(latest.customer, "Mr. Somchai")
        self.assertEqual(latest.payment, PaymentStatus.unpaid)
        self.assertEqual(latest.status, OrderStatus.confirmed)
        self.assertEqual(sorted((l.item_name, l.quantity) for l in history[1].lines), [("Coke Can", 6), ("Ice Tube", 2)])
        self.assertEqual(len(self.store.get_order_history(1)), 1)

    def test_new_customer_is_created(self):
        customer = ResolvedCustomer(kind=CustomerKind.new, name="Khun Somsak")
        self.store.append_order(intent_for(self.store, customer, ("4", 2)))
        names = [c.name for c in self.store.get_customers()]
        self.assertIn("Khun Somsak", names)
        self.assertEqual(len(names), 4)

    def test_unspecified_customer_keeps_sentinel(self):
        customer = ResolvedCustomer(kind=CustomerKind.unspecified, name="unspecified")
        self.store.append_order(intent_for(self.store, customer, ("4", 2)))
        self.assertEqual(self.store.get_order_history(1)[0].customer, "unspecified")
        self.assertEqual(len(self.store.get_customers()), 3)

    def test_update_stock(self):
        self.store.update_stock("1", 42)
        self.assertEqual(self.store.get_catalog()[0].stock, 42)
        with self.assertRaises(KeyError):
            self.store.update_stock("999", 5)

    def test_append_takes_stock(self):
        self.store.append_order(intent_for(self.store, self.known(), ("1", 2), ("1", 3), ("4", 6)))
        catalog = {e.id: e.stock for e in self.store.get_catalog()}
        self.assertEqual(catalog["1"], 5)
        self.assertEqual(catalog["4"], 48 - 6)

    def test_append_clamps_stock_at_zero(self):
        with self.assertLogs("orderbot.data.store", level="WARNING") as logs:
            self.store.append_order(intent_for(self.store, self.known(), ("1", 12)))
        self.assertEqual(self.store.get_catalog()[0].stock, 0)
        self.assertIn("clamped to 0", logs.output[0])

    def test_decrement_stock(self):
        self.store.decrement_stock("1", 4)
        self.assertEqual(self.store.get_catalog()[0].stock, 6)
        self.store.decrement_stock("1", 40)
        self.assertEqual(self.store.get_catalog()[0].stock, 0)

    def test_adjust_stock(self):
        self.assertEqual(self.store.adjust_stock("1", 5), 15)
        self.assertEqual(self.store.adjust_stock("1", -15), 0)
        with self.assertRaises(ValueError):
            self.store.adjust_stock("1", -1)
        self.assertEqual(self.store.get_catalog()[0].stock, 0)
        with self.assertRaises(KeyError):
            self.store.adjust_stock("999", 1)

    def test_cancel_restores_stock(self):
        order_id = self.store.append_order(intent_for(self.store, self.known(), ("1", 2)))
        self.assertEqual(self.store.get_catalog()[0].stock, 8)
        self.assertIs(self.store.cancel_order(order_id), False)
        self.assertEqual(self.store.get_catalog()[0].stock, 10)
        self.assertEqual(self.store.get_order_history(1)[0].status, OrderStatus.cancelled)
        self.assertIsNone(self.store.cancel_order(order_id))

    def test_cancel_reports_auto_flag(self):
        order_id = self.store.append_order(intent_for(self.store, self.known(), ("4", 1)), auto_approved=True)
        self.assertIs(self.store.cancel_order(order_id), True)

    def test_cancel_unknown_order(self):
        self.assertIsNone(self.store.cancel_order("999"))
        self.assertIsNone(self.store.cancel_order("abc"))

    def test_database_errors_become_provider_unavailable(self):
        engine = make_engine("sqlite://")
        store = SqlOrderStore(session_factory=make_session_factory(engine))
        with self.assertRaises(ProviderUnavailable) as ctx:
            store.get_catalog()
        self.assertEqual(ctx.exception.provider, "store")
        create_tables(engine)
        self.assertEqual(store.get_catalog(), [])


if __name__ == "__main__":
    unittest.main()
