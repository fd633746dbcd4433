"""
Cell lookups used to turn a raw cell number into the label shown on logs.
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.cell import Cell

logger = logging.getLogger(__name__)


def get_by_cell_number(db: Session, cell_number: str) -> Optional[Cell]:
    return db.query(Cell).filter(Cell.cell_number == cell_number).first()


def extract_cell_number(value: Optional[str]) -> str:
    """
    Pulls the number out of a display label.

    - "Cell - 1" -> "1"
    - "Block A - Cell - 3" -> "3"
    - "7" -> "7"
    """
    if not value:
        return ""
    trimmed = value.strip()
    if " - " in trimmed:
        return trimmed.split(" - ")[-1].strip()
    return trimmed


def format_cell_label(cell: Cell) -> str:
    if cell.cell_name:
        return f"{cell.cell_name} - {cell.cell_number}"
    return cell.cell_number


def resolve_cell_display(db: Session, raw_cell: Optional[str]) -> str:
    """
    Canonical label for a raw cell string, or the trimmed input if no cell
    record matches.
    """
    if not raw_cell or not raw_cell.strip():
        return ""
    trimmed = raw_cell.strip()

    candidate = extract_cell_number(trimmed)
    if candidate:
        try:
            cell = get_by_cell_number(db, candidate)
        except SQLAlchemyError as e:
            logger.error(f"Failed to resolve cell display value for '{trimmed}': {e}")
            db.rollback()
            return trimmed
        if cell:
            return format_cell_label(cell)

    return trimmed
