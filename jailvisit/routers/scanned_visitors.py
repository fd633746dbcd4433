import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ServiceError
from ..models.scanned_visitor import ScannedVisitor
from ..schemas.scanned_visitor_schema import (
    DeleteByDateRangeRequest,
    DeleteByDateRequest,
    ScannedVisitorOut,
    ScanRequest,
    ScanResponse,
    ScanTimesUpdate,
)
from ..services import visit_log_store
from ..services.visit_log_service import ACTION_TIME_IN, resolve_scan
from ..utils import format_timestamp, to_app_datetime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/scanned_visitors", tags=["scanned_visitors"])


def _to_out(entry: ScannedVisitor) -> ScannedVisitorOut:
    return ScannedVisitorOut(
        id=entry.id,
        visitor_name=entry.visitor_name,
        pdl_name=entry.pdl_name,
        cell=entry.cell,
        time_in=format_timestamp(entry.time_in),
        time_out=format_timestamp(entry.time_out),
        scan_date=format_timestamp(entry.scan_date),
        relationship=entry.relationship,
        contact_number=entry.contact_number,
        purpose=entry.purpose,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


def _parse_day(value: Optional[str], field: str) -> date:
    try:
        return date.fromisoformat((value or "").strip()[:10])
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field}, expected YYYY-MM-DD")


@router.get("", response_model=List[ScannedVisitorOut])
def list_scanned_visitors(db: Session = Depends(get_db)):
    """
    Visit log, newest scan first.
    """
    try:
        return [_to_out(entry) for entry in visit_log_store.list_all(db)]
    except Exception as e:
        logger.error(f"Error fetching scanned visitors: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch scanned visitors")


@router.post("", response_model=ScanResponse, response_model_exclude_none=True)
def add_scanned_visitor(payload: ScanRequest, response: Response, db: Session = Depends(get_db)):
    """
    Records a QR scan as a time-in or a time-out.

    - 201 with action=time_in when a new visit is opened.
    - 200 with action=time_out, already_timed_out, or (only_check=true)
      the planned action.
    """
    try:
        result = resolve_scan(db, payload)
    except ServiceError:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error in add_scanned_visitor: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Failed to add scanned visitor",
        )

    if result.action == ACTION_TIME_IN:
        response.status_code = status.HTTP_201_CREATED
    return result


@router.delete("/all")
def delete_all_logs(db: Session = Depends(get_db)):
    try:
        deleted = visit_log_store.delete_all(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting all logs: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Failed to delete all logs")

    logger.info(f"All visit logs deleted ({deleted} rows)")
    return {"message": "All logs deleted successfully", "deletedCount": deleted}


@router.delete("/by-date")
def delete_logs_by_date(payload: DeleteByDateRequest = Body(...), db: Session = Depends(get_db)):
    if not payload.date:
        raise HTTPException(status_code=400, detail="Date is required")

    day = _parse_day(payload.date, "date")
    start = datetime.combine(day, time.min)
    try:
        deleted = visit_log_store.delete_between(db, start, start + timedelta(days=1))
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting logs by date: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Failed to delete logs by date")

    return {
        "message": "Logs deleted successfully for the specified date",
        "deletedCount": deleted,
        "date": payload.date,
    }


@router.delete("/by-date-range")
def delete_logs_by_date_range(payload: DeleteByDateRangeRequest = Body(...), db: Session = Depends(get_db)):
    """
    Deletes every entry scanned from startDate through endDate, both days included.
    """
    if not payload.start_date or not payload.end_date:
        raise HTTPException(status_code=400, detail="Start date and end date are required")

    start_day = _parse_day(payload.start_date, "startDate")
    end_day = _parse_day(payload.end_date, "endDate")
    if end_day < start_day:
        raise HTTPException(status_code=400, detail="endDate must not be before startDate")

    try:
        deleted = visit_log_store.delete_between(
            db,
            datetime.combine(start_day, time.min),
            datetime.combine(end_day + timedelta(days=1), time.min),
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting logs by date range: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Failed to delete logs by date range")

    return {
        "message": "Logs deleted successfully for the specified date range",
        "deletedCount": deleted,
        "startDate": payload.start_date,
        "endDate": payload.end_date,
    }


@router.put("/{scan_id}")
def update_scanned_visitor_times(scan_id: int, payload: ScanTimesUpdate, db: Session = Depends(get_db)):
    """
    Manual correction of an entry's times. Bypasses check-in/check-out rules.
    """
    if not payload.time_in or not payload.time_out:
        raise HTTPException(status_code=400, detail="time_in and time_out are required")

    time_in = to_app_datetime(payload.time_in)
    time_out = to_app_datetime(payload.time_out)
    if time_in is None or time_out is None:
        raise HTTPException(status_code=400, detail="Invalid time format")

    entry = visit_log_store.get(db, scan_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Scanned visitor not found")

    try:
        visit_log_store.update_times(db, entry, time_in, time_out)
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating scanned visitor {scan_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Failed to update scanned visitor times")

    return {"message": "Scanned visitor times updated successfully"}


@router.delete("/{scan_id}")
def delete_scanned_visitor(scan_id: int, db: Session = Depends(get_db)):
    entry = visit_log_store.get(db, scan_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Scanned visitor not found")

    try:
        visit_log_store.delete(db, entry)
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting scanned visitor {scan_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Failed to delete scanned visitor")

    logger.info(f"Scanned visitor {scan_id} deleted")
    return {"message": "Scanned visitor deleted successfully"}
