from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class PdlBase(BaseModel):
    last_name: str
    first_name: str
    middle_name: Optional[str] = None
    cell_number: str
    criminal_case_no: Optional[str] = None
    offense_charge: Optional[str] = None
    court_branch: Optional[str] = None
    arrest_date: Optional[date] = None
    commitment_date: Optional[date] = None
    first_time_offender: Optional[bool] = False


class PdlCreate(PdlBase):
    pass


class PdlUpdate(BaseModel):
    last_name: Optional[str] = None
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    cell_number: Optional[str] = None
    criminal_case_no: Optional[str] = None
    offense_charge: Optional[str] = None
    court_branch: Optional[str] = None
    arrest_date: Optional[date] = None
    commitment_date: Optional[date] = None
    first_time_offender: Optional[bool] = None


class PdlOut(PdlBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
