from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator


class ScanRequest(BaseModel):
    # Visitor code, or the numeric primary key printed on older QR codes
    visitor_id: Optional[str] = None
    # Legacy scans identify the visitor by names instead of visitor_id
    visitor_name: Optional[str] = None
    pdl_name: Optional[str] = None
    cell: Optional[str] = None
    relationship: Optional[str] = None
    contact_number: Optional[str] = None
    # ISO-8601 string or epoch milliseconds from the scanning device
    device_time: Union[str, int, float, None] = None
    purpose: Optional[str] = None  # normal, conjugal, ...
    only_check: bool = False

    @field_validator("visitor_id", "cell", mode="before")
    @classmethod
    def _numbers_as_text(cls, value: Union[str, int, None]):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class ScanResponse(BaseModel):
    message: str
    action: str  # time_in, time_out, time_in_pending, already_timed_out
    id: Optional[int] = None
    time_in: Optional[str] = None
    time_out: Optional[str] = None
    visitor_name: Optional[str] = None
    pdl_name: Optional[str] = None
    cell: Optional[str] = None
    purpose: Optional[str] = None
    verified_conjugal: Optional[bool] = None


class ScannedVisitorOut(BaseModel):
    id: int
    visitor_name: str
    pdl_name: str
    cell: str
    time_in: Optional[str] = None
    time_out: Optional[str] = None
    scan_date: Optional[str] = None
    relationship: Optional[str] = None
    contact_number: Optional[str] = None
    purpose: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ScanTimesUpdate(BaseModel):
    time_in: Optional[str] = None
    time_out: Optional[str] = None


class DeleteByDateRequest(BaseModel):
    date: Optional[str] = None


class DeleteByDateRangeRequest(BaseModel):
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")

    model_config = {"populate_by_name": True}
