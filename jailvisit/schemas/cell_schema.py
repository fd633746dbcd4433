from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class CellCreate(BaseModel):
    cell_number: str
    cell_name: Optional[str] = None
    capacity: Optional[int] = 1
    status: Optional[str] = "active"


class CellUpdate(BaseModel):
    cell_number: Optional[str] = None
    cell_name: Optional[str] = None
    capacity: Optional[int] = None
    status: Optional[str] = None


class CellOut(BaseModel):
    id: int
    cell_number: str
    cell_name: Optional[str] = None
    capacity: Optional[int] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
