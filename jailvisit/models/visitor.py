from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey
from sqlalchemy import orm
from datetime import datetime

from ..database import Base


class Visitor(Base):
    __tablename__ = "visitors"

    id = Column(Integer, primary_key=True, index=True)
    pdl_id = Column(Integer, ForeignKey("pdls.id", ondelete="CASCADE"), nullable=False, index=True)
    # Scannable code (VIS-YY-XXXXXX). The column keeps its historical name.
    visitor_code = Column("visitor_id", String(50), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    relationship = Column(String(100), nullable=False)
    age = Column(Integer, nullable=True)
    address = Column(String(255), nullable=False)
    valid_id = Column(String(255), nullable=False)
    date_of_application = Column(Date, nullable=False)
    contact_number = Column(String(50), nullable=False)
    # 0/1 integer, same as rows written by the previous backend
    verified_conjugal = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    pdl = orm.relationship("Pdl", back_populates="visitors")
