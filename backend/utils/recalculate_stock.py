# backend/utils/recalculate_stock.py
"""
Recompute every product's stock from its movements and report drift.

    python -m utils.recalculate_stock            # report only
    python -m utils.recalculate_stock --fix      # report, ask, then fix
    python -m utils.recalculate_stock --fix --yes
"""
import argparse
import logging
import sys

from sqlalchemy.orm import Session

from database import SessionLocal, init_db
from services.integrity_service import check_all, fix_inconsistencies, verify_compensations
from utils.units import format_quantity, format_unit

logger = logging.getLogger(__name__)


def print_report(checks) -> int:
    drifted = [c for c in checks if not c.consistent]
    print(f"🔎 Checked {len(checks)} products, {len(drifted)} inconsistent.")
    for c in drifted:
        unit = format_unit(c.unit)
        print(
            f"  ❌ {c.code} {c.name}: stored {format_quantity(c.current, c.unit)} {unit}, "
            f"calculated {format_quantity(c.calculated, c.unit)} {unit} "
            f"({c.movements} movements)"
        )
    return len(drifted)


def run(db: Session, fix: bool = False, assume_yes: bool = False, ask=input) -> int:
    """Return the number of products still inconsistent when done."""
    checks = check_all(db)
    drifted = print_report(checks)

    broken = [c for c in verify_compensations(db) if not c.consistent]
    if broken:
        print(f"⚠️  {len(broken)} compensation movements point at a movement that is not deleted:")
        for c in broken:
            print(f"  - compensation {c.compensation_id} -> {c.original_id}")

    if not drifted or not fix:
        return drifted

    if not assume_yes:
        answer = ask(f"Overwrite the stored quantity of {drifted} products? [y/N] ")
        if answer.strip().lower() not in ("y", "yes", "s", "sim"):
            print("Nothing changed.")
            return drifted

    fixed = fix_inconsistencies(db, checks)
    print(f"✅ Fixed {fixed} products.")
    return sum(1 for c in check_all(db) if not c.consistent)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Check product stock against the movement history.")
    parser.add_argument("--fix", action="store_true", help="rewrite drifted quantities")
    parser.add_argument("--yes", action="store_true", help="do not ask for confirmation")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    init_db()
    db = SessionLocal()
    try:
        remaining = run(db, fix=args.fix, assume_yes=args.yes)
    finally:
        db.close()
    return 1 if remaining else 0


if __name__ == "__main__":
    sys.exit(main())
