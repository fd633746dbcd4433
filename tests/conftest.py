import os
import tempfile
from datetime import date
from pathlib import Path

# Must be set before jailvisit.database creates its engine
_tmp_dir = tempfile.mkdtemp(prefix="jailvisit-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_tmp_dir) / 'jailvisit_test.db'}"
os.environ["APP_TIMEZONE"] = "Asia/Manila"
os.environ.pop("RECENT_SCAN_WINDOW_SECONDS", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import jailvisit.main as main  # noqa: E402
from jailvisit.database import Base, SessionLocal, engine  # noqa: E402
from jailvisit.models.cell import Cell  # noqa: E402
from jailvisit.models.pdl import Pdl  # noqa: E402
from jailvisit.models.visitor import Visitor  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client():
    with TestClient(main.app) as c:
        yield c


def add_cell(db, cell_number="1", cell_name="Cell") -> Cell:
    cell = Cell(cell_number=cell_number, cell_name=cell_name, capacity=10, status="active")
    db.add(cell)
    db.commit()
    db.refresh(cell)
    return cell


def add_pdl(db, last_name="Dela Cruz", first_name="Juan", middle_name=None, cell_number="1") -> Pdl:
    pdl = Pdl(
        last_name=last_name,
        first_name=first_name,
        middle_name=middle_name,
        cell_number=cell_number,
    )
    db.add(pdl)
    db.commit()
    db.refresh(pdl)
    return pdl


def add_visitor(db, pdl_id, name="Juan Dela Cruz", visitor_code="VIS-25-000123", verified_conjugal=0) -> Visitor:
    visitor = Visitor(
        pdl_id=pdl_id,
        visitor_code=visitor_code,
        name=name,
        relationship="Brother",
        age=30,
        address="Quezon City",
        valid_id="PhilSys",
        date_of_application=date(2025, 1, 15),
        contact_number="09171234567",
        verified_conjugal=verified_conjugal,
    )
    db.add(visitor)
    db.commit()
    db.refresh(visitor)
    return visitor


@pytest.fixture()
def juan(db):
    """Visitor VIS-25-000123 for PDL 'Dela Cruz, Juan' in cell 1 ('Cell - 1')."""
    add_cell(db)
    pdl = add_pdl(db)
    return add_visitor(db, pdl.id)
