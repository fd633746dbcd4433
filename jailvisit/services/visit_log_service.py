"""
Check-in / check-out resolution for QR scans.

A scan either opens a visit (time_in), closes the visitor's open visit
(time_out), or reports that nothing can be done. Only the visit log is
written, and at most once per scan.
"""
import logging
from typing import Callable, List, NamedTuple, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..exceptions import InvalidInputError, NotFoundError
from ..models.scanned_visitor import ScannedVisitor
from ..models.visitor import Visitor
from ..schemas.scanned_visitor_schema import ScanRequest, ScanResponse
from ..utils import format_timestamp, normalize_whitespace, now_local, to_app_datetime
from . import visit_log_store
from .cell_directory import resolve_cell_display
from .visitor_directory import (
    find_by_exact_name,
    find_by_visitor_and_pdl_name,
    format_pdl_name,
    get_by_id,
    get_by_visitor_code,
    get_pdl,
)

logger = logging.getLogger(__name__)

ACTION_TIME_IN = "time_in"
ACTION_TIME_OUT = "time_out"
ACTION_TIME_IN_PENDING = "time_in_pending"
ACTION_ALREADY_TIMED_OUT = "already_timed_out"

DEFAULT_PURPOSE = "normal"
MAX_VISITOR_PK = 2**31 - 1


class ScanIdentity(NamedTuple):
    visitor_id: str
    visitor_name: str
    pdl_name: str
    cell: str

    @property
    def is_legacy(self) -> bool:
        return not self.visitor_id


class VisitorStrategy(NamedTuple):
    label: str
    applies: Callable[[ScanIdentity], bool]
    lookup: Callable[[Session, ScanIdentity], Optional[Visitor]]


def _is_visitor_pk(value: str) -> bool:
    return value.isascii() and value.isdigit() and int(value) <= MAX_VISITOR_PK


# Tried in order; the first visitor found wins
VISITOR_STRATEGIES = (
    VisitorStrategy(
        "visitor code",
        lambda ident: bool(ident.visitor_id),
        lambda db, ident: get_by_visitor_code(db, ident.visitor_id),
    ),
    # Old QR codes carry the numeric primary key
    VisitorStrategy(
        "numeric id",
        lambda ident: _is_visitor_pk(ident.visitor_id),
        lambda db, ident: get_by_id(db, int(ident.visitor_id)),
    ),
    VisitorStrategy(
        "visitor name",
        lambda ident: bool(ident.visitor_id and ident.visitor_name),
        lambda db, ident: find_by_exact_name(db, ident.visitor_name, ident.pdl_name or None),
    ),
    VisitorStrategy(
        "visitor and PDL name",
        lambda ident: ident.is_legacy and bool(ident.visitor_name and ident.pdl_name),
        lambda db, ident: find_by_visitor_and_pdl_name(db, ident.visitor_name, ident.pdl_name),
    ),
)


def identify_visitor(db: Session, ident: ScanIdentity) -> Visitor:
    tried: List[str] = []
    for strategy in VISITOR_STRATEGIES:
        if not strategy.applies(ident):
            continue
        tried.append(strategy.label)
        visitor = strategy.lookup(db, ident)
        if visitor is not None:
            logger.info(f"Visitor {visitor.id} identified by {strategy.label}")
            return visitor

    if ident.is_legacy:
        subject = f"{ident.visitor_name} / {ident.pdl_name}"
    else:
        subject = ident.visitor_id
        if ident.visitor_name:
            subject += f" (name: {ident.visitor_name})"
    raise NotFoundError(f"Visitor not found: {subject}. Tried: {', '.join(tried)}")


def _unique(values) -> List[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


class VisitContext(NamedTuple):
    visitor: Visitor
    visitor_name: str
    pdl_name: str
    cell: str


def _open_scan_finder(db: Session, ident: ScanIdentity, ctx: VisitContext) -> Callable[[], Optional[ScannedVisitor]]:
    """
    Builds the open-entry lookup for this scan. Lookups run in order and the
    first hit wins, since older rows were not always written consistently.
    """
    if ident.is_legacy:
        names = _unique([(ctx.visitor_name, ctx.pdl_name), (ident.visitor_name, ident.pdl_name)])
        cells = _unique([ctx.cell, resolve_cell_display(db, ident.cell), ident.cell])
        lookups = [
            (lambda v=v, p=p, c=c: visit_log_store.find_open_scan_by_visitor_details(db, v, p, c))
            for v, p in names
            for c in cells
        ]
    else:
        visitor = ctx.visitor
        lookups = [
            lambda: visit_log_store.find_open_scan_by_visitor_code(db, visitor.visitor_code, ctx.pdl_name),
            lambda: visit_log_store.find_open_scan_by_visitor_pk(db, visitor.id, ctx.pdl_name),
            lambda: visit_log_store.find_open_scan_by_visitor_name(db, ctx.visitor_name, ctx.pdl_name),
        ]

    def find_open() -> Optional[ScannedVisitor]:
        for lookup in lookups:
            entry = lookup()
            if entry is not None:
                return entry
        return None

    return find_open


def resolve_timestamp(device_time: Union[str, int, float, None]):
    """Device time when it parses, server time otherwise; naive app-local."""
    resolved = to_app_datetime(device_time)
    if resolved is None:
        if device_time is not None and device_time != "":
            logger.warning(f"Ignoring unparsable device_time '{device_time}'")
        resolved = now_local()
    return resolved


def _response(ctx: VisitContext, action: str, message: str, entry: Optional[ScannedVisitor] = None,
              purpose: Optional[str] = None) -> ScanResponse:
    return ScanResponse(
        message=message,
        action=action,
        id=entry.id if entry is not None else None,
        time_in=format_timestamp(entry.time_in) if entry is not None else None,
        time_out=format_timestamp(entry.time_out) if entry is not None else None,
        visitor_name=ctx.visitor_name,
        pdl_name=ctx.pdl_name,
        cell=ctx.cell,
        purpose=purpose or (entry.purpose if entry is not None else None),
        verified_conjugal=bool(ctx.visitor.verified_conjugal),
    )


def _close(db: Session, ctx: VisitContext, entry: ScannedVisitor, timestamp) -> ScanResponse:
    visit_log_store.update_time_out(db, entry, timestamp)
    logger.info(f"Visit {entry.id} timed out for '{ctx.visitor_name}' at {format_timestamp(timestamp)}")
    return _response(ctx, ACTION_TIME_OUT, f'Visitor "{ctx.visitor_name}" scan timed out', entry)


def resolve_scan(db: Session, scan: ScanRequest) -> ScanResponse:
    """
    Maps one scan to time_in, time_out, time_in_pending (only_check) or
    already_timed_out.

    Raises InvalidInputError when the scan carries no identifier and
    NotFoundError when the visitor or their PDL cannot be found.
    """
    ident = ScanIdentity(
        visitor_id=(scan.visitor_id or "").strip(),
        visitor_name=normalize_whitespace(scan.visitor_name),
        pdl_name=normalize_whitespace(scan.pdl_name),
        cell=(scan.cell or "").strip(),
    )
    if ident.is_legacy and not (ident.visitor_name and ident.pdl_name):
        raise InvalidInputError("visitor_id (or visitor_name and pdl_name) is required")

    purpose = (scan.purpose or "").strip() or DEFAULT_PURPOSE

    visitor = identify_visitor(db, ident)
    pdl = get_pdl(db, visitor.pdl_id)
    if pdl is None:
        raise NotFoundError("PDL not found for this visitor")

    ctx = VisitContext(
        visitor=visitor,
        visitor_name=normalize_whitespace(visitor.name),
        pdl_name=format_pdl_name(pdl),
        cell=resolve_cell_display(db, pdl.cell_number),
    )
    find_open = _open_scan_finder(db, ident, ctx)
    open_scan = find_open()

    if scan.only_check:
        if open_scan is not None and open_scan.time_out is None:
            return _response(ctx, ACTION_TIME_OUT, f'Visitor "{ctx.visitor_name}" will be timed out', open_scan)
        return _response(ctx, ACTION_TIME_IN_PENDING, f'Visitor "{ctx.visitor_name}" will be timed in', purpose=purpose)

    timestamp = resolve_timestamp(scan.device_time)

    if open_scan is not None:
        if open_scan.time_out is None:
            return _close(db, ctx, open_scan, timestamp)
        # The store's finders filter on time_out IS NULL; a closed row here
        # comes from a finder that does not
        return _response(ctx, ACTION_ALREADY_TIMED_OUT, f'Visitor "{ctx.visitor_name}" has already timed out', open_scan)

    # Another request may have opened a visit since the first lookup
    open_scan = find_open()
    if open_scan is None:
        recent = visit_log_store.find_recent_scan_by_visitor_details(
            db,
            ctx.visitor_name,
            ctx.pdl_name,
            ctx.cell,
            now=now_local(),
            seconds_ago=get_settings().recent_scan_window_seconds,
        )
        if recent is not None and recent.time_out is None:
            logger.warning(f"Visit {recent.id} opened moments ago for '{ctx.visitor_name}', closing it instead")
            open_scan = recent
    if open_scan is not None:
        return _close(db, ctx, open_scan, timestamp)

    try:
        entry = visit_log_store.add(
            db,
            visitor_name=ctx.visitor_name,
            pdl_name=ctx.pdl_name,
            cell=ctx.cell,
            time_in=timestamp,
            time_out=None,
            scan_date=timestamp,
            relationship=(scan.relationship or "").strip() or visitor.relationship,
            contact_number=(scan.contact_number or "").strip() or visitor.contact_number,
            purpose=purpose,
        )
    except IntegrityError:
        # The open-entry unique index rejected a concurrent duplicate time-in
        db.rollback()
        open_scan = find_open()
        if open_scan is None:
            raise
        logger.warning(f"Concurrent time-in for '{ctx.visitor_name}', closing visit {open_scan.id} instead")
        return _close(db, ctx, open_scan, timestamp)

    logger.info(f"Visit {entry.id} timed in for '{ctx.visitor_name}' at {format_timestamp(timestamp)}")
    return _response(ctx, ACTION_TIME_IN, "Scanned visitor added", entry)
