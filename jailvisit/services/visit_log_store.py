"""
Persistence for visit log rows (scanned_visitors).

Every "find_open_*" query returns the newest matching row with no time_out,
or None. Errors from the database are not caught here.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.scanned_visitor import ScannedVisitor
from ..models.visitor import Visitor

logger = logging.getLogger(__name__)


def _same_text(column, value: str):
    return func.lower(column) == value.lower()


def _newest_first(query):
    return query.order_by(ScannedVisitor.scan_date.desc(), ScannedVisitor.id.desc())


def _joined_on_visitor_name(db: Session):
    return db.query(ScannedVisitor).join(
        Visitor,
        func.lower(func.trim(ScannedVisitor.visitor_name)) == func.lower(func.trim(Visitor.name)),
    )


def list_all(db: Session) -> List[ScannedVisitor]:
    return _newest_first(db.query(ScannedVisitor)).all()


def get(db: Session, scan_id: int) -> Optional[ScannedVisitor]:
    return db.query(ScannedVisitor).filter(ScannedVisitor.id == scan_id).first()


# Visitor names are not unique: the lookups below also match the PDL name
def find_open_scan_by_visitor_code(db: Session, visitor_code: str, pdl_name: str) -> Optional[ScannedVisitor]:
    query = _joined_on_visitor_name(db).filter(
        Visitor.visitor_code == visitor_code,
        _same_text(ScannedVisitor.pdl_name, pdl_name),
        ScannedVisitor.time_out.is_(None),
    )
    return _newest_first(query).first()


def find_open_scan_by_visitor_pk(db: Session, visitor_pk: int, pdl_name: str) -> Optional[ScannedVisitor]:
    query = _joined_on_visitor_name(db).filter(
        Visitor.id == visitor_pk,
        _same_text(ScannedVisitor.pdl_name, pdl_name),
        ScannedVisitor.time_out.is_(None),
    )
    return _newest_first(query).first()


def find_open_scan_by_visitor_name(db: Session, visitor_name: str, pdl_name: str) -> Optional[ScannedVisitor]:
    query = db.query(ScannedVisitor).filter(
        _same_text(ScannedVisitor.visitor_name, visitor_name),
        _same_text(ScannedVisitor.pdl_name, pdl_name),
        ScannedVisitor.time_out.is_(None),
    )
    return _newest_first(query).first()


def find_open_scan_by_visitor_details(
    db: Session, visitor_name: str, pdl_name: str, cell: str
) -> Optional[ScannedVisitor]:
    query = db.query(ScannedVisitor).filter(
        _same_text(ScannedVisitor.visitor_name, visitor_name),
        _same_text(ScannedVisitor.pdl_name, pdl_name),
        _same_text(ScannedVisitor.cell, cell),
        ScannedVisitor.time_out.is_(None),
    )
    return _newest_first(query).first()


def find_recent_scan_by_visitor_details(
    db: Session,
    visitor_name: str,
    pdl_name: str,
    cell: str,
    now: datetime,
    seconds_ago: int = 5,
) -> Optional[ScannedVisitor]:
    """Newest matching row scanned within the last seconds_ago seconds, open or not."""
    cutoff = now - timedelta(seconds=seconds_ago)
    query = db.query(ScannedVisitor).filter(
        _same_text(ScannedVisitor.visitor_name, visitor_name),
        _same_text(ScannedVisitor.pdl_name, pdl_name),
        _same_text(ScannedVisitor.cell, cell),
        ScannedVisitor.scan_date >= cutoff,
    )
    return _newest_first(query).first()


def add(db: Session, **fields) -> ScannedVisitor:
    entry = ScannedVisitor(**fields)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def update_time_out(db: Session, entry: ScannedVisitor, time_out: datetime) -> ScannedVisitor:
    entry.time_out = time_out
    db.commit()
    db.refresh(entry)
    return entry


def update_times(db: Session, entry: ScannedVisitor, time_in: datetime, time_out: datetime) -> ScannedVisitor:
    entry.time_in = time_in
    entry.time_out = time_out
    db.commit()
    db.refresh(entry)
    return entry


def delete(db: Session, entry: ScannedVisitor) -> None:
    db.delete(entry)
    db.commit()


def delete_all(db: Session) -> int:
    deleted = db.query(ScannedVisitor).delete(synchronize_session=False)
    db.commit()
    return deleted


def delete_between(db: Session, start: datetime, end: datetime) -> int:
    """Deletes rows with start <= scan_date < end."""
    deleted = (
        db.query(ScannedVisitor)
        .filter(ScannedVisitor.scan_date >= start, ScannedVisitor.scan_date < end)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Deleted {deleted} visit log rows between {start} and {end}")
    return deleted
