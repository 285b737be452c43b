"""Engine, session factory and declarative base for the registry store."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import get_settings

DATABASE_URL = get_settings().database_url

if DATABASE_URL.startswith("sqlite"):
    sqlite_args = {"check_same_thread": False, "timeout": 30}
else:
    sqlite_args = {}

engine = create_engine(DATABASE_URL, connect_args=sqlite_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create the registry tables and seed the validity statuses."""

    from . import models, valid

    target = bind or engine
    Base.metadata.create_all(bind=target)
    session = sessionmaker(autocommit=False, autoflush=False, bind=target)()
    try:
        valid.seed_valid_statuses(session)
    finally:
        session.close()
