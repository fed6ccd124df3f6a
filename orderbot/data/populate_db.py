import csv
import os

from sqlalchemy import func, select

from ..utils.logger import get_logger
from .database import SessionLocal, create_tables
from .models import CatalogItem, Customer

logger = get_logger(__name__)

CATALOG_CSV_PATH = os.path.join(os.path.dirname(__file__), "raw", "catalog.csv")
DEMO_CUSTOMERS = ["Mr. Somchai", "Khun Malee", "Aunt Noi"]


def populate_catalog(session_factory=None, bind=None, csv_path: str = CATALOG_CSV_PATH) -> int:
    """Read catalog.csv and populate an empty catalog table; returns rows added."""
    # Ensure tables are created
    create_tables(bind)

    db = (session_factory or SessionLocal)()
    try:
        if db.scalar(select(func.count()).select_from(CatalogItem)):
            logger.info("Catalog table is not empty. Skipping population.")
            return 0

        added = 0
        with open(csv_path, mode="r", encoding="utf-8") as csvfile:
            reader = csv.DictReader(csvfile)
            for row in reader:
                db.add(CatalogItem(
                    sku=row["sku"],
                    name=row["name"],
                    unit=row["unit"],
                    category=row["category"],
                    price=float(row["price"]),
                    cost=float(row["cost"]),
                    quantity_in_stock=int(row["stock"]),
                ))
                added += 1
        for name in DEMO_CUSTOMERS:
            db.add(Customer(name=name))

        db.commit()
        logger.info("Populated %d catalog items and %d customers.", added, len(DEMO_CUSTOMERS))
        return added
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    populate_catalog()
