from sqlalchemy import Column, Integer, String, Text, DateTime, Index, func
from datetime import datetime

from ..database import Base


class ScannedVisitor(Base):
    """
    One visit: created on time-in, closed by setting time_out on the same row.

    visitor_name, pdl_name and cell are display strings copied at scan time,
    not foreign keys, so old rows stay readable after a visitor is edited.
    Timestamps are naive local times in APP_TIMEZONE.
    """
    __tablename__ = "scanned_visitors"

    id = Column(Integer, primary_key=True, index=True)
    visitor_name = Column(String(255), nullable=False)
    pdl_name = Column(String(255), nullable=False)
    cell = Column(String(50), nullable=False)
    time_in = Column(DateTime, nullable=False)
    time_out = Column(DateTime, nullable=True)
    scan_date = Column(DateTime, nullable=False, index=True)
    relationship = Column(String(100), nullable=True)
    contact_number = Column(String(50), nullable=True)
    purpose = Column(Text, nullable=True, default="normal")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


OPEN_ENTRY_INDEX_NAME = "ux_scanned_visitors_open_entry"

# At most one open visit per (visitor, pdl, cell)
Index(
    OPEN_ENTRY_INDEX_NAME,
    func.lower(ScannedVisitor.visitor_name),
    func.lower(ScannedVisitor.pdl_name),
    func.lower(ScannedVisitor.cell),
    unique=True,
    postgresql_where=ScannedVisitor.time_out.is_(None),
    sqlite_where=ScannedVisitor.time_out.is_(None),
)
