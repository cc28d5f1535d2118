"""SQLite database setup via SQLAlchemy."""
import os
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase

# Store DB in data/ directory (gitignored)
_DB_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")
DATABASE_URL = os.getenv("SITESMITH_DB_URL") or f"sqlite:///{os.path.join(_DB_DIR, 'sitesmith.db')}"

if DATABASE_URL.startswith("sqlite:///") and not os.getenv("SITESMITH_DB_URL"):
    os.makedirs(_DB_DIR, exist_ok=True)

engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless this is set per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Base(DeclarativeBase):
    pass

def init_db():
    """Create all tables."""
    import backend.models_db  # noqa: F401  registers the tables
    Base.metadata.create_all(bind=engine)
