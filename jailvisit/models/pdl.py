from sqlalchemy import Column, Integer, String, Date, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime

from ..database import Base


class Pdl(Base):
    """Person deprived of liberty."""
    __tablename__ = "pdls"

    id = Column(Integer, primary_key=True, index=True)
    last_name = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=False)
    middle_name = Column(String(255), nullable=True)
    # Raw cell number as entered (e.g. "1"); display labels come from the cells table
    cell_number = Column(String(50), nullable=False)

    criminal_case_no = Column(String(100), nullable=True)
    offense_charge = Column(String(255), nullable=True)
    court_branch = Column(String(255), nullable=True)
    arrest_date = Column(Date, nullable=True)
    commitment_date = Column(Date, nullable=True)
    first_time_offender = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    visitors = relationship("Visitor", back_populates="pdl", cascade="all, delete-orphan")
