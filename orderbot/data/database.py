from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..app.config import Config

# Create a base class for our models
Base = declarative_base()


def make_engine(url: str = Config.DATABASE_URL):
    """Engine for ``url``; an in-memory SQLite URL shares one connection across threads."""
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def make_session_factory(bind):
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


# Create the SQLAlchemy engine
engine = make_engine(Config.DATABASE_URL)

# Create a configured "Session" class
SessionLocal = make_session_factory(engine)


def get_db():
    """Dependency to get a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """Create all tables in the database."""
    # Import all models here before calling create_all
    # This ensures they are registered with the Base metadata
    from .models import CatalogItem, Customer, Order, OrderLine  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
