from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from investment_portal.modules.sequences.models import Sequence
from investment_portal.shared.utils import utcnow


def sequence_name_for(prefix: str, year: int) -> str:
    return f"{prefix}_{year}"


def format_identifier(prefix: str, year: int, value: int) -> str:
    return f"{prefix}-{year}-{value:04d}"


def _increment(db: Session, sequence_name: str) -> int | None:
    stmt = (
        update(Sequence)
        .where(Sequence.sequence_name == sequence_name)
        .values(current_value=Sequence.current_value + 1, updated_at=utcnow())
        .returning(Sequence.current_value)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).scalar_one_or_none()


def next_value(db: Session, sequence_name: str) -> int:
    """
    Atomically increment and return the counter for `sequence_name`.

    The UPDATE ... RETURNING takes the row lock, so two concurrent callers
    never read the same value. A missing row is created at 1; if another
    transaction inserts it first the unique constraint fires and we retry
    the increment instead.
    """
    value = _increment(db, sequence_name)
    if value is not None:
        return value

    year = _year_from_name(sequence_name)
    try:
        with db.begin_nested():
            db.add(Sequence(sequence_name=sequence_name, current_value=1, year=year))
        return 1
    except IntegrityError:
        value = _increment(db, sequence_name)
        if value is None:
            raise
        return value


def next_identifier(db: Session, prefix: str, *, year: int | None = None) -> str:
    year = year or utcnow().year
    value = next_value(db, sequence_name_for(prefix, year))
    return format_identifier(prefix, year, value)


def _year_from_name(sequence_name: str) -> int:
    tail = sequence_name.rsplit("_", 1)[-1]
    return int(tail) if tail.isdigit() else utcnow().year
