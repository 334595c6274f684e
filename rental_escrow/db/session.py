from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rental_escrow.core.config import settings

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # FastAPI runs sync endpoints in a threadpool
    connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    # Import models so they register on Base.metadata
    from rental_escrow.models import booking, escrow, ledger, notification, wallet  # noqa: F401
    from rental_escrow.db.base import Base

    Base.metadata.create_all(bind=bind or engine)
