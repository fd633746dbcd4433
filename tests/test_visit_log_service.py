import re
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import add_cell, add_pdl, add_visitor
from jailvisit.exceptions import InvalidInputError, NotFoundError
from jailvisit.models.scanned_visitor import ScannedVisitor
from jailvisit.schemas.scanned_visitor_schema import ScanRequest
from jailvisit.services import visit_log_store
from jailvisit.services.visit_log_service import resolve_scan
from jailvisit.utils import now_local


def _scan(db, **fields):
    return resolve_scan(db, ScanRequest(**fields))


def _rows(db):
    db.expire_all()
    return db.query(ScannedVisitor).order_by(ScannedVisitor.id).all()


def test_first_scan_times_in_and_opens_one_entry(db, juan):
    result = _scan(db, visitor_id="VIS-25-000123")

    assert result.action == "time_in"
    rows = _rows(db)
    assert len(rows) == 1
    assert rows[0].id == result.id
    assert rows[0].time_out is None
    assert rows[0].time_in == rows[0].scan_date
    assert rows[0].purpose == "normal"


def test_second_scan_closes_the_same_entry(db, juan):
    first = _scan(db, visitor_id="VIS-25-000123")
    second = _scan(db, visitor_id="VIS-25-000123")

    assert second.action == "time_out"
    assert second.id == first.id
    rows = _rows(db)
    assert len(rows) == 1
    assert rows[0].time_out is not None


def test_scan_after_time_out_opens_a_new_entry(db, juan):
    first = _scan(db, visitor_id="VIS-25-000123")
    _scan(db, visitor_id="VIS-25-000123")
    third = _scan(db, visitor_id="VIS-25-000123")

    assert third.action == "time_in"
    assert third.id != first.id
    rows = _rows(db)
    assert len(rows) == 2
    assert rows[1].time_out is None


def test_concrete_visit_with_device_times(db, juan):
    scan1 = _scan(db, visitor_id="VIS-25-000123", device_time="2025-03-01T09:00:00+08:00")
    assert scan1.action == "time_in"
    assert scan1.cell == "Cell - 1"
    assert scan1.pdl_name == "Dela Cruz, Juan"
    assert scan1.visitor_name == "Juan Dela Cruz"
    assert scan1.time_in == "2025-03-01 09:00:00"

    scan2 = _scan(db, visitor_id="VIS-25-000123", device_time="2025-03-01T09:00:03+08:00")
    assert scan2.action == "time_out"
    assert scan2.time_out == "2025-03-01 09:00:03"

    scan3 = _scan(db, visitor_id="VIS-25-000123", device_time="2025-03-01T11:30:00+08:00")
    assert scan3.action == "time_in"
    assert scan3.id != scan1.id


def test_utc_device_time_is_stored_in_local_zone(db, juan):
    result = _scan(db, visitor_id="VIS-25-000123", device_time="2025-03-01T01:00:00Z")

    assert result.time_in == "2025-03-01 09:00:00"


def test_unparsable_device_time_falls_back_to_server_time(db, juan):
    result = _scan(db, visitor_id="VIS-25-000123", device_time="yesterday-ish")

    assert result.action == "time_in"
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", result.time_in)


def test_only_check_never_writes(db, juan):
    pending = _scan(db, visitor_id="VIS-25-000123", only_check=True)
    assert pending.action == "time_in_pending"
    assert pending.id is None
    assert _rows(db) == []

    opened = _scan(db, visitor_id="VIS-25-000123")
    planned = _scan(db, visitor_id="VIS-25-000123", only_check=True)
    assert planned.action == "time_out"
    assert planned.id == opened.id
    rows = _rows(db)
    assert len(rows) == 1
    assert rows[0].time_out is None


def test_only_check_reports_conjugal_verification(db):
    pdl = add_pdl(db, last_name="Santos", first_name="Maria", cell_number="4")
    add_visitor(db, pdl.id, name="Pedro Santos", visitor_code="VIS-25-000777", verified_conjugal=1)

    result = _scan(db, visitor_id="VIS-25-000777", only_check=True)

    assert result.verified_conjugal is True
    # No cell record for "4": the raw number is shown
    assert result.cell == "4"


def test_unknown_visitor_id_is_not_found_and_writes_nothing(db, juan):
    with pytest.raises(NotFoundError) as exc_info:
        _scan(db, visitor_id="VIS-99-999999")

    assert "VIS-99-999999" in exc_info.value.message
    assert exc_info.value.status_code == 404
    assert _rows(db) == []


def test_missing_identifiers_are_rejected(db, juan):
    with pytest.raises(InvalidInputError):
        _scan(db, visitor_name="Juan Dela Cruz")

    with pytest.raises(InvalidInputError):
        _scan(db, purpose="normal")


def test_visitor_without_pdl_is_not_found(db):
    add_visitor(db, pdl_id=999, name="Orphan Visitor", visitor_code="VIS-25-000404")

    with pytest.raises(NotFoundError) as exc_info:
        _scan(db, visitor_id="VIS-25-000404")

    assert exc_info.value.message == "PDL not found for this visitor"


def test_numeric_primary_key_from_old_qr_codes(db, juan):
    result = _scan(db, visitor_id=str(juan.id))

    assert result.action == "time_in"
    assert result.visitor_name == "Juan Dela Cruz"


def test_integer_visitor_id_is_accepted(db, juan):
    result = _scan(db, visitor_id=juan.id)

    assert result.action == "time_in"


def test_falls_back_to_visitor_name_when_code_is_unknown(db, juan):
    result = _scan(db, visitor_id="stale-code", visitor_name="  juan   dela cruz ")

    assert result.action == "time_in"
    assert result.visitor_name == "Juan Dela Cruz"


def test_purpose_round_trips(db, juan):
    result = _scan(db, visitor_id="VIS-25-000123", purpose="conjugal")

    entry = visit_log_store.get(db, result.id)
    assert entry.purpose == "conjugal"
    assert result.purpose == "conjugal"


def test_blank_purpose_defaults_to_normal(db, juan):
    result = _scan(db, visitor_id="VIS-25-000123", purpose="   ")

    assert result.purpose == "normal"


def test_legacy_scan_sees_entry_opened_by_visitor_id(db, juan):
    opened = _scan(db, visitor_id="VIS-25-000123")

    legacy = _scan(db, visitor_name="Juan Dela Cruz", pdl_name="Dela Cruz, Juan", cell="1")

    assert legacy.action == "time_out"
    assert legacy.id == opened.id
    assert len(_rows(db)) == 1


def test_legacy_scan_times_in_like_visitor_id_scan(db):
    add_cell(db, cell_number="2", cell_name="Annex")
    pdl = add_pdl(db, last_name="Santos", first_name="Maria", middle_name="Luz", cell_number="2")
    add_visitor(db, pdl.id, name="Pedro Santos", visitor_code="VIS-25-000555")

    legacy = _scan(db, visitor_name="pedro santos", pdl_name="Santos Maria Luz", cell="2")
    assert legacy.action == "time_in"
    assert legacy.cell == "Annex - 2"
    assert legacy.pdl_name == "Santos, Maria Luz"

    closing = _scan(db, visitor_id="VIS-25-000555")
    assert closing.action == "time_out"
    assert closing.id == legacy.id


def test_legacy_scan_with_unknown_pair_is_not_found(db, juan):
    with pytest.raises(NotFoundError):
        _scan(db, visitor_name="Juan Dela Cruz", pdl_name="Reyes, Ana", cell="1")


def test_open_entry_index_rejects_second_open_visit(db, juan):
    fields = dict(
        visitor_name="Juan Dela Cruz",
        pdl_name="Dela Cruz, Juan",
        cell="Cell - 1",
        time_out=None,
    )
    first = _scan(db, visitor_id="VIS-25-000123")
    entry = visit_log_store.get(db, first.id)

    with pytest.raises(IntegrityError):
        visit_log_store.add(db, time_in=entry.time_in, scan_date=entry.scan_date, **fields)
    db.rollback()


def test_concurrent_time_in_closes_instead_of_duplicating(db, juan, monkeypatch):
    """A time-in that lost the race to another request ends up closing that visit."""
    other = _scan(db, visitor_id="VIS-25-000123", device_time="2025-03-01T09:00:00+08:00")

    # Make the scan below miss the open entry on both lookup passes
    blind_calls = {"left": 6}

    def blind(real):
        def wrapper(*args, **kwargs):
            if blind_calls["left"] > 0:
                blind_calls["left"] -= 1
                return None
            return real(*args, **kwargs)
        return wrapper

    for name in (
        "find_open_scan_by_visitor_code",
        "find_open_scan_by_visitor_pk",
        "find_open_scan_by_visitor_name",
    ):
        monkeypatch.setattr(visit_log_store, name, blind(getattr(visit_log_store, name)))
    monkeypatch.setattr(visit_log_store, "find_recent_scan_by_visitor_details", lambda *a, **kw: None)

    result = _scan(db, visitor_id="VIS-25-000123", device_time="2025-03-01T09:00:01+08:00")

    assert result.action == "time_out"
    assert result.id == other.id
    rows = _rows(db)
    assert len(rows) == 1
    assert rows[0].time_out is not None


def test_same_name_visitors_on_different_pdls_keep_separate_visits(db):
    first_pdl = add_pdl(db)
    second_pdl = add_pdl(db, last_name="Reyes", first_name="Ana", cell_number="1")
    add_visitor(db, first_pdl.id, name="Maria Santos", visitor_code="VIS-25-000001")
    add_visitor(db, second_pdl.id, name="Maria Santos", visitor_code="VIS-25-000002")

    first = _scan(db, visitor_id="VIS-25-000001")
    second = _scan(db, visitor_id="VIS-25-000002")

    assert first.action == "time_in"
    assert second.action == "time_in"
    assert second.id != first.id
    assert second.pdl_name == "Reyes, Ana"
    rows = _rows(db)
    assert [(r.pdl_name, r.time_out) for r in rows] == [("Dela Cruz, Juan", None), ("Reyes, Ana", None)]

    closing = _scan(db, visitor_id="VIS-25-000002")
    assert closing.action == "time_out"
    assert closing.id == second.id
    assert visit_log_store.get(db, first.id).time_out is None


def _blind_open_finders(monkeypatch):
    for name in (
        "find_open_scan_by_visitor_code",
        "find_open_scan_by_visitor_pk",
        "find_open_scan_by_visitor_name",
    ):
        monkeypatch.setattr(visit_log_store, name, lambda *args, **kwargs: None)


def test_recent_open_scan_is_closed_instead_of_duplicated(db, juan, monkeypatch):
    opened = _scan(db, visitor_id="VIS-25-000123")
    _blind_open_finders(monkeypatch)

    result = _scan(db, visitor_id="VIS-25-000123")

    assert result.action == "time_out"
    assert result.id == opened.id
    rows = _rows(db)
    assert len(rows) == 1
    assert rows[0].time_out is not None


def test_recent_closed_scan_does_not_block_new_time_in(db, juan, monkeypatch):
    first = _scan(db, visitor_id="VIS-25-000123")
    _scan(db, visitor_id="VIS-25-000123")
    _blind_open_finders(monkeypatch)

    result = _scan(db, visitor_id="VIS-25-000123")

    assert result.action == "time_in"
    assert result.id != first.id
    assert len(_rows(db)) == 2


def test_recent_scan_window_comes_from_settings(db, juan, monkeypatch):
    ten_minutes_ago = (now_local() - timedelta(minutes=10)).isoformat()
    opened = _scan(db, visitor_id="VIS-25-000123", device_time=ten_minutes_ago)
    monkeypatch.setenv("RECENT_SCAN_WINDOW_SECONDS", "3600")
    _blind_open_finders(monkeypatch)

    result = _scan(db, visitor_id="VIS-25-000123")

    assert result.action == "time_out"
    assert result.id == opened.id


def test_closed_row_from_finder_reports_already_timed_out(db, juan, monkeypatch):
    first = _scan(db, visitor_id="VIS-25-000123")
    _scan(db, visitor_id="VIS-25-000123")
    closed = visit_log_store.get(db, first.id)
    monkeypatch.setattr(visit_log_store, "find_open_scan_by_visitor_code", lambda *args, **kwargs: closed)

    result = _scan(db, visitor_id="VIS-25-000123")

    assert result.action == "already_timed_out"
    assert result.id == first.id
    assert len(_rows(db)) == 1


def test_epoch_millisecond_device_time(db, juan):
    result = _scan(db, visitor_id="VIS-25-000123", device_time=1740790800000)

    assert result.time_in == "2025-03-01 09:00:00"
