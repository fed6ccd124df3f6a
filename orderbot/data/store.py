"""SQLAlchemy-backed catalog / customer / order store.

Every method opens its own session and translates SQLAlchemy failures into
``ProviderUnavailable`` so callers can keep serving from their last snapshot.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from ..nlu.normalizer import normalize
from ..schemas.order_models import (
    CatalogEntry,
    CustomerKind,
    CustomerProfile,
    OrderIntent,
    OrderRecord,
    OrderRecordLine,
    OrderStatus,
)
from ..utils.errors import ProviderUnavailable
from ..utils.logger import get_logger
from .database import SessionLocal
from .models import CatalogItem, Customer, Order, OrderLine

logger = get_logger(__name__)


def _entry(row: CatalogItem) -> CatalogEntry:
    return CatalogEntry(
        id=str(row.id),
        name=row.name,
        unit=row.unit or "",
        price=row.price,
        cost=row.cost or 0.0,
        stock=row.quantity_in_stock or 0,
        category=row.category or "",
        sku=row.sku,
    )


class SqlOrderStore:
    def __init__(self, session_factory=None):
        self.session_factory = session_factory or SessionLocal

    def _fail(self, op: str, e: Exception):
        logger.warning("store %s failed: %s", op, e)
        return ProviderUnavailable("store", f"{op} failed", cause=e)

    def get_catalog(self) -> List[CatalogEntry]:
        db = self.session_factory()
        try:
            rows = db.execute(select(CatalogItem).order_by(CatalogItem.id)).scalars().all()
            return [_entry(r) for r in rows]
        except SQLAlchemyError as e:
            raise self._fail("get_catalog", e) from e
        finally:
            db.close()

    def get_customers(self) -> List[CustomerProfile]:
        db = self.session_factory()
        try:
            rows = db.execute(select(Customer).order_by(Customer.id)).scalars().all()
            return [
                CustomerProfile(id=str(r.id), name=r.name, normalized_name=normalize(r.name), phone=r.phone_number)
                for r in rows
            ]
        except SQLAlchemyError as e:
            raise self._fail("get_customers", e) from e
        finally:
            db.close()

    def get_order_history(self, limit: int = 100) -> List[OrderRecord]:
        """Most recent ``limit`` orders, newest first."""
        db = self.session_factory()
        try:
            stmt = (
                select(Order)
                .options(selectinload(Order.lines).selectinload(OrderLine.item))
                .order_by(Order.id.desc())
                .limit(limit)
            )
            orders = db.execute(stmt).scalars().all()
            return [
                OrderRecord(
                    id=str(o.id),
                    customer=o.customer_name,
                    payment=o.payment_status,
                    status=o.status,
                    lines=[
                        OrderRecordLine(item_id=str(line.item_id), item_name=line.item.name,
                                        quantity=line.quantity, unit_price=line.price_at_time_of_order)
                        for line in o.lines
                    ],
                )
                for o in orders
            ]
        except SQLAlchemyError as e:
            raise self._fail("get_order_history", e) from e
        finally:
            db.close()

    def _decrement_stock(self, db, item_id: int, qty: int):
        """Take ``qty`` out of stock inside ``db``'s transaction, clamping at zero."""
        current = db.scalar(select(CatalogItem.quantity_in_stock).where(CatalogItem.id == item_id))
        if current is None:
            logger.warning("item %s missing from catalog, stock untouched", item_id)
            return
        if current < qty:
            logger.warning("stock of item %s would go negative (%d - %d), clamped to 0", item_id, current, qty)
        db.execute(
            update(CatalogItem)
            .where(CatalogItem.id == item_id)
            .values(quantity_in_stock=case(
                (CatalogItem.quantity_in_stock > qty, CatalogItem.quantity_in_stock - qty),
                else_=0,
            ))
            .execution_options(synchronize_session=False)
        )

    def append_order(self, intent: OrderIntent, auto_approved: bool = False) -> str:
        """Store the order and take its quantities out of stock in one transaction."""
        db = self.session_factory()
        try:
            customer_id = None
            if intent.customer.kind == CustomerKind.known and intent.customer.profile and intent.customer.profile.id:
                customer_id = int(intent.customer.profile.id)
            elif intent.customer.kind == CustomerKind.new:
                customer = Customer(name=intent.customer.name)
                db.add(customer)
                db.flush()
                customer_id = customer.id
            order = Order(
                customer_id=customer_id,
                customer_name=intent.customer.profile.name if intent.customer.profile else intent.customer.name,
                status=OrderStatus.confirmed,
                payment_status=intent.payment,
                delivery_person=intent.delivery_person,
                total_amount=intent.total,
                confidence=intent.confidence.value,
                auto_approved=auto_approved,
            )
            requested: Dict[int, int] = {}
            for item in intent.items:
                order.lines.append(OrderLine(item_id=int(item.entry.id), quantity=item.quantity,
                                             price_at_time_of_order=item.unit_price))
                requested[int(item.entry.id)] = requested.get(int(item.entry.id), 0) + item.quantity
            db.add(order)
            db.flush()
            for item_id, qty in requested.items():
                self._decrement_stock(db, item_id, qty)
            db.commit()
            logger.info("order %s stored for %s (%d lines, total %.2f)",
                        order.id, order.customer_name, len(intent.items), intent.total)
            return str(order.id)
        except SQLAlchemyError as e:
            db.rollback()
            raise self._fail("append_order", e) from e
        finally:
            db.close()

    def decrement_stock(self, item_id: str, qty: int):
        db = self.session_factory()
        try:
            self._decrement_stock(db, int(item_id), qty)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise self._fail("decrement_stock", e) from e
        finally:
            db.close()

    def update_stock(self, item_id: str, new_qty: int):
        db = self.session_factory()
        try:
            item = db.get(CatalogItem, int(item_id))
            if item is None:
                raise KeyError(f"catalog item {item_id} not found")
            item.quantity_in_stock = new_qty
            db.commit()
            logger.debug("stock of %s set to %d", item.name, new_qty)
        except SQLAlchemyError as e:
            db.rollback()
            raise self._fail("update_stock", e) from e
        finally:
            db.close()

    def adjust_stock(self, item_id: str, delta: int) -> int:
        """Add ``delta`` (negative to remove) to the stock level and return the new level.

        The change is a single conditional UPDATE, so concurrent adjustments
        never overwrite one another.

        Raises:
            KeyError: when the item does not exist
            ValueError: when removing more than is in stock
        """
        db = self.session_factory()
        try:
            stmt = update(CatalogItem).where(CatalogItem.id == int(item_id))
            if delta < 0:
                stmt = stmt.where(CatalogItem.quantity_in_stock >= -delta)
            result = db.execute(
                stmt.values(quantity_in_stock=CatalogItem.quantity_in_stock + delta)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.rollback()
                if db.get(CatalogItem, int(item_id)) is None:
                    raise KeyError(f"catalog item {item_id} not found")
                raise ValueError(f"not enough stock of item {item_id} to remove {-delta}")
            new_qty = db.scalar(select(CatalogItem.quantity_in_stock).where(CatalogItem.id == int(item_id)))
            db.commit()
            logger.debug("stock of item %s adjusted by %+d to %d", item_id, delta, new_qty)
            return new_qty
        except SQLAlchemyError as e:
            db.rollback()
            raise self._fail("adjust_stock", e) from e
        finally:
            db.close()

    def cancel_order(self, order_id: str) -> Optional[bool]:
        """Mark an order cancelled and put its stock back.

        Returns whether the order had been auto-approved, or None when there
        is no such open order.
        """
        if not str(order_id).isdigit():
            return None
        db = self.session_factory()
        try:
            cancelled = db.execute(
                update(Order)
                .where(Order.id == int(order_id), Order.status != OrderStatus.cancelled)
                .values(status=OrderStatus.cancelled, cancelled_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            if cancelled.rowcount == 0:
                db.rollback()
                return None
            order = db.get(Order, int(order_id))
            for line in order.lines:
                db.execute(
                    update(CatalogItem)
                    .where(CatalogItem.id == line.item_id)
                    .values(quantity_in_stock=CatalogItem.quantity_in_stock + line.quantity)
                    .execution_options(synchronize_session=False)
                )
            db.commit()
            logger.info("order %s cancelled", order_id)
            return bool(order.auto_approved)
        except SQLAlchemyError as e:
            db.rollback()
            raise self._fail("cancel_order", e) from e
        finally:
            db.close()
