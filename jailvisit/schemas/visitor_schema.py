from datetime import date, datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class VisitorCreate(BaseModel):
    name: str
    relationship: str
    age: int
    address: str
    valid_id: str
    date_of_application: date
    contact_number: str
    verified_conjugal: Optional[bool] = False
    # Only sent when importing visitors that already have a printed code
    visitor_id: Optional[str] = None


class VisitorUpdate(BaseModel):
    name: Optional[str] = None
    relationship: Optional[str] = None
    age: Optional[int] = None
    address: Optional[str] = None
    valid_id: Optional[str] = None
    date_of_application: Optional[date] = None
    contact_number: Optional[str] = None
    verified_conjugal: Optional[bool] = None
    visitor_id: Optional[str] = None


class VisitorOut(BaseModel):
    id: int
    pdl_id: int
    visitor_id: str = Field(validation_alias=AliasChoices("visitor_code", "visitor_id"))
    name: str
    relationship: str
    age: Optional[int] = None
    address: str
    valid_id: str
    date_of_application: date
    contact_number: str
    verified_conjugal: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VisitorWithPdlOut(VisitorOut):
    pdl_last_name: Optional[str] = None
    pdl_first_name: Optional[str] = None
    pdl_middle_name: Optional[str] = None
