# backend/services/stock_service.py
"""
Stock consistency layer.

Every write to Product.quantity goes through this module. A product's cached
quantity must always equal

    initial_quantity + sum(sign(type) * quantity converted to the product unit)

over its non-deleted movements. Each public function runs as a single
transaction: the product row is locked, the movement rows and the new
quantity are written together, and any failure rolls everything back.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from models.employee import Employee, EmployeeStatus
from models.movement import Movement, MovementType
from models.product import Product
from services.errors import (
    EmployeeNotFound, EmployeeRequired, InactiveEmployee, IncompatibleUnits,
    InsufficientStock, InvalidQuantity, MovementDeleted, MovementNotFound,
    ProductNotFound,
)
from utils.units import (
    STOCK_EPSILON, UnitConversionError, convert_quantity, normalize_unit,
    resolve_unit, units_compatible, validate_stock,
)

logger = logging.getLogger(__name__)

COMPENSATION_NOTE = "Compensação automática para exclusão da movimentação {id}"
ADJUSTMENT_NOTE = "Ajuste de estoque"

# Stored quantities are rounded to this many decimals to keep float noise out of the invariant
QUANTITY_DECIMALS = 6


def _round(value: float) -> float:
    # + 0.0 turns -0.0 into 0.0
    return round(value, QUANTITY_DECIMALS) + 0.0


def norm_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    c = code.strip()
    return c if c else None


def _sign(movement_type) -> int:
    return 1 if MovementType(movement_type) == MovementType.ENTRADA else -1


def signed_quantity(movement: Movement, product_unit: str) -> float:
    """Movement effect on stock, expressed in the product unit."""
    converted = convert_quantity(movement.quantity, movement.unit, product_unit)
    return _sign(movement.type) * converted


def _lock_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).with_for_update().first()
    if not product:
        raise ProductNotFound("Produto não encontrado")
    return product


def _lock_movement(db: Session, movement_id: int) -> Movement:
    movement = db.query(Movement).filter(Movement.id == movement_id).with_for_update().first()
    if not movement:
        raise MovementNotFound("Movimentação não encontrada")
    return movement


def _check_quantity(quantity) -> float:
    if quantity is None or quantity <= 0:
        raise InvalidQuantity("A quantidade deve ser maior que zero")
    return float(quantity)


def _check_unit(product: Product, unit: Optional[str]) -> str:
    resolved = resolve_unit(unit, product.unit)
    if not units_compatible(product.unit, resolved):
        raise IncompatibleUnits(
            f"Unidades incompatíveis: {normalize_unit(product.unit)} e {normalize_unit(resolved)}"
        )
    return resolved


def _check_employee(db: Session, movement_type: MovementType, employee_id: Optional[int]) -> Optional[Employee]:
    if employee_id is None:
        if movement_type == MovementType.SAIDA:
            raise EmployeeRequired("Selecione um colaborador responsável")
        return None

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise EmployeeNotFound("Colaborador não encontrado")
    if movement_type == MovementType.SAIDA and employee.status != EmployeeStatus.ACTIVE:
        raise InactiveEmployee("Colaborador inativo não pode registrar saídas")
    return employee


def _settle(
    base: float,
    movement_type: MovementType,
    quantity: float,
    unit: str,
    product_unit: str,
    message: str,
) -> Tuple[float, float]:
    """
    Apply a movement on top of `base` and return (new stock, quantity to store).

    A saída that overshoots the stock by no more than STOCK_EPSILON is stored
    as what was really left, converted into the movement unit and rounded down,
    so the stock lands on zero and still equals the sum of its movements.
    """
    total = _round(base + _sign(movement_type) * convert_quantity(quantity, unit, product_unit))
    if total >= 0:
        return total, quantity
    if total < -STOCK_EPSILON or movement_type != MovementType.SAIDA or base <= 0:
        raise InsufficientStock(message)

    factor = 10 ** QUANTITY_DECIMALS
    taken = math.floor(round(convert_quantity(base, product_unit, unit) * factor, 3)) / factor
    if taken <= 0:
        raise InsufficientStock(message)
    logger.info("Saída of %s %s trimmed to the %s %s left in stock", quantity, unit, taken, unit)
    return max(_round(base - convert_quantity(taken, unit, product_unit)), 0.0), taken


def register_movement(
    db: Session,
    *,
    product_id: int,
    type,
    quantity: float,
    unit: Optional[str] = None,
    employee_id: Optional[int] = None,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Movement:
    """Record an entrada or saída and update the product stock in the same transaction."""
    movement_type = MovementType(type)
    quantity = _check_quantity(quantity)

    try:
        product = _lock_product(db, product_id)
        unit = _check_unit(product, unit)
        _check_employee(db, movement_type, employee_id)

        if movement_type == MovementType.SAIDA:
            valid, message = validate_stock(product.quantity, quantity, unit, product.unit)
            if not valid:
                raise InsufficientStock(message)

        new_total, quantity = _settle(
            product.quantity, movement_type, quantity, unit, product.unit,
            "Quantidade insuficiente em estoque",
        )
        movement = Movement(
            product_id=product.id,
            type=movement_type,
            quantity=quantity,
            unit=unit,
            employee_id=employee_id,
            user_id=user_id,
            notes=notes or None,
        )
        db.add(movement)
        product.quantity = new_total
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(movement)
    logger.info(
        "Movement %s registered: %s %s %s on product %s, stock now %s",
        movement.id, movement_type.value, quantity, unit, product_id, product.quantity,
    )
    return movement


def edit_movement(db: Session, movement_id: int, changes: dict, user_id: Optional[int] = None) -> Movement:
    """
    Change type, quantity, unit, employee or notes of a live movement.

    The old effect is reversed and the new one applied against the same product
    row, so the stock never passes through an intermediate committed state.
    """
    try:
        movement = _lock_movement(db, movement_id)
        if movement.deleted:
            raise MovementDeleted("Movimentação excluída não pode ser editada")
        product = _lock_product(db, movement.product_id)

        new_type = MovementType(changes.get("type") or movement.type)
        new_quantity = _check_quantity(changes.get("quantity", movement.quantity))
        new_unit = _check_unit(product, changes.get("unit", movement.unit))
        new_employee_id = changes.get("employee_id", movement.employee_id)
        new_notes = changes.get("notes", movement.notes)

        if "employee_id" in changes or "type" in changes:
            _check_employee(db, new_type, new_employee_id)

        base = product.quantity - signed_quantity(movement, product.unit)
        new_total, new_quantity = _settle(
            base, new_type, new_quantity, new_unit, product.unit,
            "A edição deixaria o estoque negativo",
        )

        old = {"type": MovementType(movement.type).value, "quantity": movement.quantity, "unit": movement.unit}
        movement.type = new_type
        movement.quantity = new_quantity
        movement.unit = new_unit
        movement.employee_id = new_employee_id
        movement.notes = new_notes or None
        product.quantity = new_total
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(movement)
    logger.info(
        "Movement %s edited by user %s: %s -> %s %s %s, stock now %s",
        movement_id, user_id, old, new_type.value, new_quantity, new_unit, product.quantity,
    )
    return movement


def delete_movement(db: Session, movement_id: int, user_id: Optional[int] = None) -> Tuple[Movement, Optional[Movement]]:
    """
    Soft delete a movement and reverse its effect on stock.

    Deleting an entrada that was already consumed would drive the stock negative;
    in that case an automatic compensation entrada covering the shortfall is
    recorded and the stock settles at zero. Deleting an already deleted movement
    changes nothing.
    """
    compensation = None
    try:
        movement = _lock_movement(db, movement_id)
        if movement.deleted:
            db.rollback()
            logger.info("Movement %s already deleted, nothing to do", movement_id)
            return movement, None

        product = _lock_product(db, movement.product_id)
        new_total = _round(product.quantity - signed_quantity(movement, product.unit))

        if new_total < 0:
            shortfall = _round(-new_total)
            compensation = Movement(
                product_id=product.id,
                type=MovementType.ENTRADA,
                quantity=shortfall,
                unit=product.unit,
                user_id=user_id,
                notes=COMPENSATION_NOTE.format(id=movement.id),
                compensation_for_id=movement.id,
            )
            db.add(compensation)
            new_total = 0.0
            logger.warning(
                "Deleting movement %s would leave product %s at %s; compensating with %s %s",
                movement.id, product.id, -shortfall, shortfall, product.unit,
            )

        movement.deleted = True
        movement.deleted_at = datetime.now(timezone.utc)
        product.quantity = new_total
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(movement)
    if compensation is not None:
        db.refresh(compensation)
    logger.info("Movement %s deleted by user %s, stock of product %s now %s",
                movement_id, user_id, movement.product_id, product.quantity)
    return movement, compensation


def adjust_stock_level(
    db: Session,
    product_id: int,
    target: float,
    notes: str = ADJUSTMENT_NOTE,
    user_id: Optional[int] = None,
    commit: bool = True,
) -> Optional[Movement]:
    """Record the entrada/saída that moves a product to `target`; None when already there."""
    if target is None or target < 0:
        raise InvalidQuantity("O estoque não pode ser negativo")

    try:
        product = _lock_product(db, product_id)
        diff = _round(float(target) - product.quantity)
        if diff == 0:
            if commit:
                # releases the row lock
                db.rollback()
            return None

        movement = Movement(
            product_id=product.id,
            type=MovementType.ENTRADA if diff > 0 else MovementType.SAIDA,
            quantity=abs(diff),
            unit=product.unit,
            user_id=user_id,
            notes=notes,
        )
        db.add(movement)
        product.quantity = _round(float(target))
        if commit:
            db.commit()
            db.refresh(movement)
        else:
            db.flush()
    except Exception:
        db.rollback()
        raise

    logger.info("Product %s adjusted to %s (%+g %s)", product_id, target, diff, product.unit)
    return movement


def create_product(
    db: Session,
    *,
    code: str,
    name: str,
    unit: Optional[str] = None,
    quantity: float = 0,
    min_quantity: float = 0,
    description: Optional[str] = None,
    category_id: Optional[int] = None,
    commit: bool = True,
) -> Product:
    """New product; its starting quantity becomes the baseline movements are summed onto."""
    if quantity is None or quantity < 0:
        raise InvalidQuantity("O estoque não pode ser negativo")
    quantity = _round(float(quantity))
    product = Product(
        code=norm_code(code),
        name=name.strip(),
        unit=(unit or "un").strip(),
        quantity=quantity,
        initial_quantity=quantity,
        min_quantity=min_quantity or 0,
        description=description,
        category_id=category_id,
    )
    db.add(product)
    if commit:
        db.commit()
        db.refresh(product)
    else:
        db.flush()
    return product


def update_product(
    db: Session,
    product: Product,
    changes: dict,
    user_id: Optional[int] = None,
    adjustment_note: str = ADJUSTMENT_NOTE,
) -> Product:
    """
    Apply catalogue changes; a new `quantity` is recorded as an adjustment movement.

    Changing the unit is refused while live movements exist, since the cached
    quantity and the movement history are expressed in the old unit.
    """
    changes = dict(changes)
    target = changes.pop("quantity", None)

    if changes.get("unit") and normalize_unit(changes["unit"]) != normalize_unit(product.unit):
        live = db.query(Movement).filter(Movement.product_id == product.id, Movement.deleted.is_(False)).count()
        if live:
            raise IncompatibleUnits("Não é possível trocar a unidade de um produto com movimentações")

    if "code" in changes:
        changes["code"] = norm_code(changes["code"])
    for field, value in changes.items():
        setattr(product, field, value)

    try:
        db.flush()
        if target is not None:
            adjust_stock_level(db, product.id, target, notes=adjustment_note, user_id=user_id, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(product)
    return product


def expected_quantity(db: Session, product: Product) -> Tuple[float, int]:
    """Recompute the stock from scratch: (quantity, number of live movements)."""
    movements = (
        db.query(Movement)
        .filter(Movement.product_id == product.id, Movement.deleted.is_(False))
        .order_by(Movement.created_at.asc(), Movement.id.asc())
        .all()
    )
    total = product.initial_quantity or 0.0
    for m in movements:
        try:
            total += signed_quantity(m, product.unit)
        except UnitConversionError:
            logger.warning(
                "Movement %s in %s cannot be converted to %s, using raw value",
                m.id, m.unit, product.unit,
            )
            total += _sign(m.type) * m.quantity
    return _round(total), len(movements)
