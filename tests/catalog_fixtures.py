"""Shared catalog / customer fixtures for the test modules."""

from orderbot.app.cache import CacheState
from orderbot.data.catalog_index import build
from orderbot.data.customer_resolver import CustomerRegistry
from orderbot.nlu.normalizer import normalize
from orderbot.schemas.order_models import (
    CatalogEntry,
    CustomerProfile,
    OrderRecord,
    OrderRecordLine,
    PaymentStatus,
)

# id, sku, name, unit, category, price, stock
CATALOG_ROWS = [
    ("1", "ICE-TUBE", "Ice Tube", "bag", "ice", 60, 10),
    ("2", "ICE-CRUSH", "Ice Crushed", "bag", "ice", 40, 35),
    ("3", "ICE-BLOCK", "Ice Block", "block", "ice", 120, 8),
    ("4", "COKE-CAN", "Coke Can", "can", "soft drink", 15, 48),
    ("5", "COKE-BTL", "Coke Bottle", "bottle", "soft drink", 25, 30),
    ("6", "PEPSI-CAN", "Pepsi Can", "can", "soft drink", 14, 60),
    ("7", "WATER-BTL", "Drinking Water", "bottle", "water", 10, 120),
    ("8", "BEER-LEO", "Leo Beer", "bottle", "beer", 55, 24),
]


def make_entries(**stock_overrides):
    """CatalogEntry list; ``stock_overrides`` maps entry id (as ``id_<n>``) to a stock level."""
    entries = []
    for id_, sku, name, unit, category, price, stock in CATALOG_ROWS:
        stock = stock_overrides.get(f"id_{id_}", stock)
        entries.append(CatalogEntry(id=id_, sku=sku, name=name, unit=unit, category=category,
                                    price=float(price), stock=stock))
    return entries


def make_catalog(version=1, **stock_overrides):
    return build(make_entries(**stock_overrides), version=version)


def profile(name, id_=None):
    return CustomerProfile(id=id_, name=name, normalized_name=normalize(name))


def order(customer, *lines, payment=PaymentStatus.paid):
    """``lines`` are (item_id, item_name, quantity) tuples."""
    return OrderRecord(
        customer=customer,
        payment=payment,
        lines=[OrderRecordLine(item_id=i, item_name=n, quantity=q) for i, n, q in lines],
    )


DEFAULT_CUSTOMERS = [profile("Mr. Somchai", "1"), profile("Khun Malee", "2"), profile("Aunt Noi", "3")]
DEFAULT_HISTORY = [
    order("Mr. Somchai", ("4", "Coke Can", 4)),
    order("Mr. Somchai", ("4", "Coke Can", 6), ("1", "Ice Tube", 2)),
    order("Mr. Somchai", ("4", "Coke Can", 5)),
]


def make_state(customers=None, history=None, version=1, **stock_overrides):
    customers = DEFAULT_CUSTOMERS if customers is None else customers
    history = DEFAULT_HISTORY if history is None else history
    return CacheState(
        catalog=make_catalog(version=version, **stock_overrides),
        customers=CustomerRegistry.build(customers, history, version=version),
        version=version,
        loaded_at=0.0,
    )
