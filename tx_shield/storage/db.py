import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

DB_URL = os.getenv("DB_URL", "sqlite:///./tx_shield.db")
_connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}
engine = create_engine(DB_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()

def maybe_init_db(audit_enabled: bool):
    if not audit_enabled:
        return
    from .models import Analysis, ThreatReportRecord  # noqa
    Base.metadata.create_all(bind=engine)
