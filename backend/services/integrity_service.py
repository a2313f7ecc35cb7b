# backend/services/integrity_service.py
import logging
from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from models.movement import Movement
from models.product import Product
from services.stock_service import expected_quantity

logger = logging.getLogger(__name__)

# Cached and recomputed stock closer than this are considered equal
INTEGRITY_TOLERANCE = 0.0001


@dataclass
class StockCheck:
    product_id: int
    code: str
    name: str
    unit: str
    current: float
    calculated: float
    difference: float
    consistent: bool
    movements: int

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class CompensationCheck:
    compensation_id: int
    product_id: int
    original_id: Optional[int]
    original_deleted: Optional[bool]
    consistent: bool

    def as_dict(self) -> dict:
        return asdict(self)


def check_product(db: Session, product: Product) -> StockCheck:
    calculated, count = expected_quantity(db, product)
    current = product.quantity or 0.0
    difference = round(abs(current - calculated), 6)
    return StockCheck(
        product_id=product.id,
        code=product.code,
        name=product.name,
        unit=product.unit,
        current=current,
        calculated=calculated,
        difference=difference,
        consistent=difference < INTEGRITY_TOLERANCE,
        movements=count,
    )


def check_all(db: Session) -> List[StockCheck]:
    products = db.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()
    checks = [check_product(db, p) for p in products]
    drifted = sum(1 for c in checks if not c.consistent)
    if drifted:
        logger.warning("Integrity check: %s of %s products drifted", drifted, len(checks))
    else:
        logger.info("Integrity check: all %s products consistent", len(checks))
    return checks


def fix_inconsistencies(db: Session, checks: Iterable[StockCheck]) -> int:
    """Overwrite drifted quantities with the value recomputed from movements."""
    fixed = 0
    try:
        for check in checks:
            if check.consistent:
                continue
            if check.calculated < 0:
                logger.error(
                    "Product %s (%s) recomputes to negative stock %s, left untouched",
                    check.product_id, check.code, check.calculated,
                )
                continue
            product = db.query(Product).filter(Product.id == check.product_id).with_for_update().first()
            if product is None:
                continue
            logger.info("Fixing product %s (%s): %s -> %s %s",
                        product.id, product.code, product.quantity, check.calculated, product.unit)
            product.quantity = check.calculated
            fixed += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    return fixed


def verify_compensations(db: Session) -> List[CompensationCheck]:
    """Every compensation entrada must point at a movement that is soft deleted."""
    compensations = (
        db.query(Movement)
        .filter(Movement.compensation_for_id.isnot(None))
        .order_by(Movement.id.asc())
        .all()
    )
    results = []
    for comp in compensations:
        original = comp.compensation_for
        original_deleted = bool(original.deleted) if original is not None else None
        results.append(CompensationCheck(
            compensation_id=comp.id,
            product_id=comp.product_id,
            original_id=original.id if original is not None else None,
            original_deleted=original_deleted,
            consistent=bool(original_deleted),
        ))
    broken = [r.compensation_id for r in results if not r.consistent]
    if broken:
        logger.warning("Compensations without a deleted original: %s", broken)
    return results
