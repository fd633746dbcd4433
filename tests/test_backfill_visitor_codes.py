import re

from conftest import add_pdl, add_visitor
from jailvisit.models.visitor import Visitor
from scripts.backfill_visitor_codes import backfill_visitor_codes


def test_backfill_assigns_codes_only_to_blank_rows(db):
    pdl = add_pdl(db)
    blank = add_visitor(db, pdl.id, name="Imported Visitor", visitor_code="")
    kept = add_visitor(db, pdl.id, name="Juan Dela Cruz", visitor_code="VIS-25-000123")

    assert backfill_visitor_codes() == 1

    db.expire_all()
    assert re.fullmatch(r"VIS-\d{2}-\d{6}", db.get(Visitor, blank.id).visitor_code)
    assert db.get(Visitor, kept.id).visitor_code == "VIS-25-000123"
