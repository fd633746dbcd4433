from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime

from ..database import Base


class Cell(Base):
    __tablename__ = "cells"

    id = Column(Integer, primary_key=True, index=True)
    cell_number = Column(String(50), index=True, nullable=False)
    cell_name = Column(String(255), nullable=True)
    capacity = Column(Integer, default=1)
    status = Column(String(50), default="active")  # active, inactive
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
