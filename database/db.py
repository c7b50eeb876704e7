from sqlalchemy import create_engine               # SQLAlchemy engine factory
from sqlalchemy.orm import declarative_base, sessionmaker

from config.settings import settings               # ✅ settings loaded from .env

# ✅ SQLite needs check_same_thread=False since sessions are used from the request threadpool
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

# ✅ build the engine from the configured DB URL
engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)

# ✅ session factory
#    - expire_on_commit=False: repositories hand detached rows back to the services
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

# ✅ declarative base for every model
Base = declarative_base()


def init_db() -> None:
    """Create missing tables (dev/test convenience, migrations own prod)."""
    create_tables(engine)


def create_tables(bind) -> None:
    # model modules register their tables on Base.metadata when imported
    from models import (  # noqa: F401
        approval_actions, course_assignments, courses, lecturers,
        result_approvals, results, students,
    )

    Base.metadata.create_all(bind=bind)
