import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload

from ..database import get_db
from ..exceptions import ServiceError
from ..models.visitor import Visitor
from ..schemas.visitor_schema import VisitorCreate, VisitorUpdate, VisitorOut, VisitorWithPdlOut
from ..services.visitor_directory import assign_visitor_code, create_visitor, get_pdl

logger = logging.getLogger(__name__)
router = APIRouter(tags=["visitors"])

REQUIRED_TEXT_FIELDS = ("name", "relationship", "address", "valid_id", "contact_number")


def _with_pdl_names(visitor: Visitor) -> VisitorWithPdlOut:
    out = VisitorWithPdlOut.model_validate(visitor)
    if visitor.pdl:
        out.pdl_last_name = visitor.pdl.last_name
        out.pdl_first_name = visitor.pdl.first_name
        out.pdl_middle_name = visitor.pdl.middle_name
    return out


def _check_required(data: dict, partial: bool = False):
    for field in REQUIRED_TEXT_FIELDS:
        if partial and field not in data:
            continue
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            raise HTTPException(status_code=400, detail="All fields are required")
        data[field] = value.strip()


@router.get("/pdls/{pdl_id}/visitors", response_model=List[VisitorOut])
def list_visitors_by_pdl(pdl_id: int, db: Session = Depends(get_db)):
    return db.query(Visitor).filter(Visitor.pdl_id == pdl_id).order_by(Visitor.name).all()


@router.get("/visitors", response_model=List[VisitorWithPdlOut])
def list_visitors_with_pdl_names(db: Session = Depends(get_db)):
    visitors = db.query(Visitor).options(joinedload(Visitor.pdl)).order_by(Visitor.name).all()
    return [_with_pdl_names(v) for v in visitors]


@router.get("/visitors/{visitor_pk}", response_model=VisitorOut)
def get_visitor(visitor_pk: int, db: Session = Depends(get_db)):
    visitor = db.query(Visitor).filter(Visitor.id == visitor_pk).first()
    if not visitor:
        raise HTTPException(status_code=404, detail="Visitor not found")
    return visitor


@router.post("/pdls/{pdl_id}/visitors", status_code=status.HTTP_201_CREATED)
def add_visitor(pdl_id: int, payload: VisitorCreate, db: Session = Depends(get_db)):
    """
    Registers a visitor for a PDL and issues their QR visitor code.
    """
    data = payload.model_dump()
    _check_required(data)

    if not get_pdl(db, pdl_id):
        raise HTTPException(status_code=404, detail="PDL not found")

    try:
        visitor = create_visitor(db, pdl_id, data)
    except ServiceError:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error in add_visitor: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Failed to add visitor")

    return {
        "message": "Visitor added successfully",
        "id": visitor.id,
        "visitor_id": visitor.visitor_code,
    }


@router.put("/visitors/{visitor_pk}")
def update_visitor(visitor_pk: int, payload: VisitorUpdate, db: Session = Depends(get_db)):
    visitor = db.query(Visitor).filter(Visitor.id == visitor_pk).first()
    if not visitor:
        raise HTTPException(status_code=404, detail="Visitor not found")

    data = payload.model_dump(exclude_unset=True)
    _check_required(data, partial=True)

    assign_visitor_code(db, visitor, data.pop("visitor_id", None))
    if "verified_conjugal" in data:
        data["verified_conjugal"] = 1 if data["verified_conjugal"] else 0

    for key, value in data.items():
        if value is None and key in ("age", "date_of_application"):
            continue
        setattr(visitor, key, value)

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error in update_visitor: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e) or "Failed to update visitor")

    return {"message": "Visitor updated successfully"}


@router.delete("/visitors/{visitor_pk}")
def delete_visitor(visitor_pk: int, db: Session = Depends(get_db)):
    visitor = db.query(Visitor).filter(Visitor.id == visitor_pk).first()
    if not visitor:
        raise HTTPException(status_code=404, detail="Visitor not found")

    try:
        db.delete(visitor)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting visitor {visitor_pk}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete visitor")

    logger.info(f"Visitor {visitor_pk} deleted")
    return {"message": "Visitor deleted successfully"}
