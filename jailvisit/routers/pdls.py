import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.pdl import Pdl
from ..schemas.pdl_schema import PdlCreate, PdlUpdate, PdlOut

logger = logging.getLogger(__name__)
# Mounted without /api, the frontend has always called /pdls
router = APIRouter(prefix="/pdls", tags=["pdls"])

REQUIRED_TEXT_FIELDS = ("last_name", "first_name", "cell_number")


def _clean(data: dict) -> dict:
    for key, value in data.items():
        if isinstance(value, str):
            data[key] = value.strip()
    if "first_time_offender" in data:
        data["first_time_offender"] = 1 if data["first_time_offender"] else 0
    return data


@router.get("", response_model=List[PdlOut])
def list_pdls(db: Session = Depends(get_db)):
    return db.query(Pdl).order_by(Pdl.last_name.asc(), Pdl.first_name.asc()).all()


@router.get("/{pdl_id}", response_model=PdlOut)
def get_pdl(pdl_id: int, db: Session = Depends(get_db)):
    pdl = db.query(Pdl).filter(Pdl.id == pdl_id).first()
    if not pdl:
        raise HTTPException(status_code=404, detail="PDL not found")
    return pdl


@router.post("", response_model=PdlOut, status_code=status.HTTP_201_CREATED)
def create_pdl(payload: PdlCreate, db: Session = Depends(get_db)):
    data = _clean(payload.model_dump())
    for field in REQUIRED_TEXT_FIELDS:
        if not data.get(field):
            raise HTTPException(status_code=400, detail=f"{field} is required")

    pdl = Pdl(**data)
    try:
        db.add(pdl)
        db.commit()
        db.refresh(pdl)
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating PDL: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create PDL")

    logger.info(f"PDL created: {pdl.last_name}, {pdl.first_name} (ID: {pdl.id})")
    return pdl


@router.put("/{pdl_id}", response_model=PdlOut)
def update_pdl(pdl_id: int, payload: PdlUpdate, db: Session = Depends(get_db)):
    pdl = db.query(Pdl).filter(Pdl.id == pdl_id).first()
    if not pdl:
        raise HTTPException(status_code=404, detail="PDL not found")

    data = _clean(payload.model_dump(exclude_unset=True))
    for field in REQUIRED_TEXT_FIELDS:
        if field in data and not data[field]:
            raise HTTPException(status_code=400, detail=f"{field} cannot be empty")

    for key, value in data.items():
        setattr(pdl, key, value)

    try:
        db.commit()
        db.refresh(pdl)
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating PDL {pdl_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update PDL")

    return pdl


@router.delete("/{pdl_id}")
def delete_pdl(pdl_id: int, db: Session = Depends(get_db)):
    """
    Deletes a PDL and their visitors. Visit log rows are kept.
    """
    pdl = db.query(Pdl).filter(Pdl.id == pdl_id).first()
    if not pdl:
        raise HTTPException(status_code=404, detail="PDL not found")

    try:
        db.delete(pdl)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting PDL {pdl_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete PDL")

    logger.info(f"PDL {pdl_id} deleted")
    return {"message": "PDL deleted successfully"}
