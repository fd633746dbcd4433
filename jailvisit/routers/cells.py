import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.cell import Cell
from ..schemas.cell_schema import CellCreate, CellUpdate, CellOut

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/cells", tags=["cells"])


@router.get("", response_model=List[CellOut])
def list_cells(db: Session = Depends(get_db)):
    return db.query(Cell).order_by(Cell.cell_number).all()


@router.get("/active", response_model=List[CellOut])
def list_active_cells(db: Session = Depends(get_db)):
    """
    Cells offered when assigning a PDL.
    """
    return db.query(Cell).filter(Cell.status == "active").order_by(Cell.cell_number).all()


@router.get("/{cell_id}", response_model=CellOut)
def get_cell(cell_id: int, db: Session = Depends(get_db)):
    cell = db.query(Cell).filter(Cell.id == cell_id).first()
    if not cell:
        raise HTTPException(status_code=404, detail="Cell not found")
    return cell


@router.post("", response_model=CellOut, status_code=status.HTTP_201_CREATED)
def create_cell(payload: CellCreate, db: Session = Depends(get_db)):
    cell_number = payload.cell_number.strip()
    if not cell_number:
        raise HTTPException(status_code=400, detail="Cell number is required")

    cell = Cell(
        cell_number=cell_number,
        cell_name=(payload.cell_name or "").strip() or None,
        capacity=payload.capacity or 1,
        status=payload.status or "active",
    )
    try:
        db.add(cell)
        db.commit()
        db.refresh(cell)
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating cell: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create cell")

    logger.info(f"Cell created: {cell.cell_number} (ID: {cell.id})")
    return cell


@router.put("/{cell_id}", response_model=CellOut)
def update_cell(cell_id: int, payload: CellUpdate, db: Session = Depends(get_db)):
    cell = db.query(Cell).filter(Cell.id == cell_id).first()
    if not cell:
        raise HTTPException(status_code=404, detail="Cell not found")

    data = payload.model_dump(exclude_unset=True)

    if "cell_number" in data:
        cell_number = (data["cell_number"] or "").strip()
        if not cell_number:
            raise HTTPException(status_code=400, detail="Cell number cannot be empty")
        cell.cell_number = cell_number

    if "cell_name" in data:
        cell.cell_name = (data["cell_name"] or "").strip() or None

    if data.get("capacity") is not None:
        cell.capacity = data["capacity"]

    if data.get("status"):
        cell.status = data["status"]

    try:
        db.commit()
        db.refresh(cell)
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating cell {cell_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update cell")

    return cell


@router.delete("/{cell_id}")
def delete_cell(cell_id: int, db: Session = Depends(get_db)):
    cell = db.query(Cell).filter(Cell.id == cell_id).first()
    if not cell:
        raise HTTPException(status_code=404, detail="Cell not found")

    try:
        db.delete(cell)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting cell {cell_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete cell")

    logger.info(f"Cell {cell_id} deleted")
    return {"message": "Cell deleted successfully"}
