"""
Visitor and PDL lookups, plus visitor code generation.

Name matching is case-insensitive and whitespace-normalised on both sides,
so "juan  dela cruz" finds "Juan Dela Cruz".
"""
import logging
import secrets
import string
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..exceptions import InvalidInputError
from ..models.pdl import Pdl
from ..models.visitor import Visitor
from ..utils import normalize_whitespace

logger = logging.getLogger(__name__)

VISITOR_CODE_MAX_ATTEMPTS = 20


# -----------------------------
# PDLs
# -----------------------------
def get_pdl(db: Session, pdl_id: int) -> Optional[Pdl]:
    return db.query(Pdl).filter(Pdl.id == pdl_id).first()


def format_pdl_name(pdl: Pdl) -> str:
    """'Last, First Middle', middle name left out when blank."""
    last = normalize_whitespace(pdl.last_name)
    first = normalize_whitespace(pdl.first_name)
    middle = normalize_whitespace(pdl.middle_name)
    given = f"{first} {middle}" if middle else first
    return f"{last}, {given}"


def parse_pdl_name(pdl_name: str) -> Optional[Tuple[str, str, str]]:
    """
    Splits a PDL name into (last, first, middle).

    Accepts "Last, First Middle" and "Last First Middle". Returns None when
    no last and first name can be found.
    """
    normalized = normalize_whitespace(pdl_name)
    last = first = middle = ""

    if "," in normalized:
        parts = normalized.split(",")
        if len(parts) == 2:
            last = parts[0].strip()
            given = parts[1].strip().split(" ")
            first = given[0] if given else ""
            middle = " ".join(given[1:])
    else:
        parts = [p for p in normalized.split(" ") if p]
        if len(parts) >= 2:
            last = parts[0]
            first = parts[1]
            middle = " ".join(parts[2:])

    if not last or not first:
        return None
    return last, first, middle


# -----------------------------
# Visitors
# -----------------------------
def get_by_visitor_code(db: Session, visitor_code: str) -> Optional[Visitor]:
    return db.query(Visitor).filter(Visitor.visitor_code == visitor_code).first()


def get_by_id(db: Session, visitor_pk: int) -> Optional[Visitor]:
    return db.query(Visitor).filter(Visitor.id == visitor_pk).first()


def visitor_code_exists(db: Session, visitor_code: str) -> bool:
    return db.query(Visitor.id).filter(Visitor.visitor_code == visitor_code).first() is not None


def find_by_visitor_and_pdl_name(db: Session, visitor_name: str, pdl_name: str) -> Optional[Visitor]:
    """
    Visitor whose name matches and whose PDL matches the given PDL name.

    When the search has no middle name, the PDL must have none either.
    """
    parsed = parse_pdl_name(pdl_name)
    if not parsed:
        return None

    search_name = normalize_whitespace(visitor_name).lower()
    search_last, search_first, search_middle = (p.lower() for p in parsed)

    rows = db.query(Visitor).join(Pdl, Visitor.pdl_id == Pdl.id).order_by(Visitor.id).all()
    for visitor in rows:
        pdl = visitor.pdl
        if normalize_whitespace(visitor.name).lower() != search_name:
            continue
        if normalize_whitespace(pdl.last_name).lower() != search_last:
            continue
        if normalize_whitespace(pdl.first_name).lower() != search_first:
            continue
        if normalize_whitespace(pdl.middle_name).lower() != search_middle:
            continue
        return visitor
    return None


def find_by_exact_name(db: Session, visitor_name: str, pdl_name: Optional[str] = None) -> Optional[Visitor]:
    """
    Visitor by exact name, scoped by PDL name when one is given.

    Without a PDL name, a name shared by several visitors is ambiguous and
    resolves to None.
    """
    if pdl_name:
        return find_by_visitor_and_pdl_name(db, visitor_name, pdl_name)

    search_name = normalize_whitespace(visitor_name).lower()
    if not search_name:
        return None

    matches = [
        v for v in db.query(Visitor).all()
        if normalize_whitespace(v.name).lower() == search_name
    ]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        logger.info(f"Visitor name '{visitor_name}' is ambiguous ({len(matches)} matches)")
    return None


def generate_visitor_code() -> str:
    """VIS-YY-XXXXXX: two-digit year plus six random digits."""
    year = str(datetime.now().year)[2:]
    digits = "".join(secrets.choice(string.digits) for _ in range(6))
    return f"VIS-{year}-{digits}"


def create_visitor(db: Session, pdl_id: int, data: dict) -> Visitor:
    """
    Inserts a visitor, generating a unique visitor code unless data carries
    one in "visitor_id".
    """
    provided_code = (data.pop("visitor_id", None) or "").strip()
    data["verified_conjugal"] = 1 if data.get("verified_conjugal") else 0

    if provided_code:
        if visitor_code_exists(db, provided_code):
            raise InvalidInputError(
                f"Visitor ID {provided_code} already exists. Please use a different ID or update the existing visitor."
            )
        visitor = Visitor(pdl_id=pdl_id, visitor_code=provided_code, **data)
        db.add(visitor)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise InvalidInputError(
                f"Visitor ID {provided_code} already exists. Please use a different ID or update the existing visitor."
            )
        db.refresh(visitor)
        return visitor

    last_error = None
    for _ in range(VISITOR_CODE_MAX_ATTEMPTS):
        code = generate_visitor_code()
        if visitor_code_exists(db, code):
            continue

        visitor = Visitor(pdl_id=pdl_id, visitor_code=code, **data)
        db.add(visitor)
        try:
            db.commit()
        except IntegrityError as e:
            # Another request took the same code between the check and the insert
            db.rollback()
            last_error = e
            continue
        db.refresh(visitor)
        logger.info(f"Visitor created: {visitor.name} ({visitor.visitor_code})")
        return visitor

    if last_error is not None:
        raise last_error
    raise RuntimeError("Failed to generate unique visitor_id after multiple attempts")


def assign_visitor_code(db: Session, visitor: Visitor, visitor_code: Optional[str]) -> None:
    """Sets a new visitor code on an existing visitor, refusing codes owned by someone else."""
    code = (visitor_code or "").strip()
    if not code:
        return
    owner = get_by_visitor_code(db, code)
    if owner is not None and owner.id != visitor.id:
        raise InvalidInputError(
            f"Visitor ID {code} already exists for another visitor. Please use a different ID."
        )
    visitor.visitor_code = code
