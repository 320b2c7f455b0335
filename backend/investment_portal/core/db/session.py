from __future__ import annotations

from collections.abc import Generator
from functools import lru_cache
import importlib

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from investment_portal.core.config import settings
from investment_portal.core.db.base import Base

MODEL_MODULES = [
    "investment_portal.core.db.models",
    "investment_portal.modules.sequences.models",
    "investment_portal.modules.requests.models",
    "investment_portal.modules.workflow.models",
    "investment_portal.modules.tasks.models",
    "investment_portal.modules.notifications.models",
    "investment_portal.modules.documents.models",
    "investment_portal.modules.jobs.models",
    "investment_portal.modules.ai.models",
    "investment_portal.modules.templates.models",
]


def import_model_modules() -> None:
    for module_name in MODEL_MODULES:
        importlib.import_module(module_name)


@lru_cache(maxsize=1)
def get_engine():
    engine = create_engine(settings.database_url, pool_pre_ping=True)
    import_model_modules()
    Base.metadata.create_all(bind=engine)
    return engine


def get_session_local() -> sessionmaker[Session]:
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    db = get_session_local()()
    try:
        yield db
    finally:
        db.close()
