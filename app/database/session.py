from app.database.engine import SessionLocal, engine
from app.database.base import Base


def get_db():
    """Provides a synchronous database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables (for local runs and tests, prefer Alembic in prod)."""
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
