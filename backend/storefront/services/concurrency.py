# Overview: Transaction boundary and atomic stock movements shared by every service that moves units.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, require_positive_quantity


def lock_for_update(query):
    """
    Apply row-level locking for critical reads.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The conditional decrements below are what actually guard quantities.
    """
    return query.with_for_update()


def run_in_transaction(func):
    """
    Execute a unit of work and commit it, or roll everything back.

    There is no retry: a concurrency failure surfaces to the caller as-is.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise


def conditional_decrement(model, row_id: int, quantity: int) -> bool:
    """
    UPDATE model SET quantity = quantity - n WHERE id = :id AND quantity >= n.

    Returns True when exactly one row matched. The check and the write are a
    single statement, so two callers can never both take the last units.
    """
    quantity = require_positive_quantity(quantity)
    values = {"quantity": model.quantity - quantity}
    mapper_args = getattr(model, "__mapper_args__", {})
    if "version_id_col" in mapper_args:
        values["version_id"] = model.version_id + 1

    result = db.session.execute(
        update(model)
        .where(model.id == row_id, model.quantity >= quantity)
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def conditional_increment(model, row_id: int, quantity: int) -> bool:
    """UPDATE model SET quantity = quantity + n WHERE id = :id."""
    quantity = require_positive_quantity(quantity)
    values = {"quantity": model.quantity + quantity}
    mapper_args = getattr(model, "__mapper_args__", {})
    if "version_id_col" in mapper_args:
        values["version_id"] = model.version_id + 1

    result = db.session.execute(
        update(model)
        .where(model.id == row_id)
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


def take_units(model, row_id: int, quantity: int, label: str):
    """
    Conditional decrement that raises instead of returning False.

    Distinguishes a row that no longer exists (NotFoundError) from one that
    simply does not hold enough units (InsufficientStockError).
    """
    if conditional_decrement(model, row_id, quantity):
        return
    remaining = db.session.query(model.quantity).filter(model.id == row_id).scalar()
    if remaining is None:
        raise NotFoundError(f"{label} not found", {"id": row_id})
    raise InsufficientStockError(
        f"Only {remaining} units of {label} available",
        {"id": row_id, "available": remaining, "requested": quantity},
    )


def flush_versioned(model, row_id: int):
    """
    Flush pending optimistic-locked changes.

    A StaleDataError means another writer touched the row. When the row is
    gone it becomes NotFoundError; a genuine version conflict is re-raised.
    """
    try:
        db.session.flush()
    except StaleDataError:
        db.session.rollback()
        exists = db.session.query(model.id).filter(model.id == row_id).first()
        if exists is None:
            raise NotFoundError(f"{model.__name__} {row_id} no longer exists", {"id": row_id})
        raise
