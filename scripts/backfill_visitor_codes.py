"""
Assigns a visitor code (VIS-YY-XXXXXX) to every visitor that has none.

Rows imported from the old system may carry an empty code, which leaves
them without a scannable QR. With the package installed:

    python scripts/backfill_visitor_codes.py
"""

from sqlalchemy import or_

from jailvisit.database import SessionLocal
from jailvisit.models.visitor import Visitor
from jailvisit.services.visitor_directory import (
    VISITOR_CODE_MAX_ATTEMPTS,
    generate_visitor_code,
    visitor_code_exists,
)


def backfill_visitor_codes() -> int:
    db = SessionLocal()
    try:
        visitors = (
            db.query(Visitor)
            .filter(or_(Visitor.visitor_code.is_(None), Visitor.visitor_code == ""))
            .order_by(Visitor.id)
            .all()
        )
        print(f"\nAssigning visitor codes to {len(visitors)} visitors...\n")

        updated = 0
        for visitor in visitors:
            for _ in range(VISITOR_CODE_MAX_ATTEMPTS):
                code = generate_visitor_code()
                if not visitor_code_exists(db, code):
                    break
            else:
                print(f"  ❌ No free code found for visitor {visitor.id}, skipped")
                continue

            visitor.visitor_code = code
            # Flush per row so the next existence check sees this code
            db.flush()
            updated += 1
            print(f"  ✓ {visitor.name} -> {code}")

        db.commit()
        print(f"\n✅ Done. {updated} visitors updated.")
        return updated
    except Exception as e:
        db.rollback()
        print(f"❌ Error assigning visitor codes: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    backfill_visitor_codes()
