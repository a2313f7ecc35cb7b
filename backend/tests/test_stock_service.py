import pytest

from models.movement import Movement, MovementType
from models.product import Product
from services import stock_service
from services.errors import (
    EmployeeRequired, InactiveEmployee, IncompatibleUnits, InsufficientStock,
    InvalidQuantity, MovementDeleted, MovementNotFound, ProductNotFound,
)
from services.integrity_service import check_all


def _quantity(db, product_id):
    db.expire_all()
    return db.query(Product).filter(Product.id == product_id).one().quantity


def _entrada(db, product, quantity, unit=None, **kw):
    return stock_service.register_movement(
        db, product_id=product.id, type=MovementType.ENTRADA, quantity=quantity, unit=unit, **kw)


def _saida(db, product, quantity, employee, unit=None, **kw):
    return stock_service.register_movement(
        db, product_id=product.id, type=MovementType.SAIDA, quantity=quantity, unit=unit,
        employee_id=employee.id, **kw)


def test_entrada_increases_stock(db, liter_product):
    movement = _entrada(db, liter_product, 5)
    assert movement.unit == "l"
    assert _quantity(db, liter_product.id) == pytest.approx(15)


def test_saida_in_related_unit_is_converted(db, liter_product, employee):
    _saida(db, liter_product, 500, employee, unit="ml")
    assert _quantity(db, liter_product.id) == pytest.approx(9.5)
    movement = db.query(Movement).one()
    # stored as entered
    assert movement.quantity == 500
    assert movement.unit == "ml"


def test_saida_above_stock_is_rejected_and_writes_nothing(db, liter_product, employee):
    with pytest.raises(InsufficientStock):
        _saida(db, liter_product, 10.5, employee)
    assert _quantity(db, liter_product.id) == pytest.approx(10)
    assert db.query(Movement).count() == 0


def test_saida_within_epsilon_settles_at_zero(db, liter_product, employee):
    movement = _saida(db, liter_product, 10.005, employee)
    assert _quantity(db, liter_product.id) == 0
    # only what was left is recorded
    assert movement.quantity == pytest.approx(10)
    assert check_all(db)[0].consistent

    stock_service.delete_movement(db, movement.id)
    assert _quantity(db, liter_product.id) == pytest.approx(10)
    assert check_all(db)[0].consistent


def test_saida_within_epsilon_in_related_unit(db, liter_product, employee):
    movement = _saida(db, liter_product, 10004, employee, unit="ml")
    assert movement.unit == "ml"
    assert movement.quantity == pytest.approx(10000)
    assert _quantity(db, liter_product.id) == 0
    assert check_all(db)[0].consistent


def test_edit_within_epsilon_settles_at_zero(db, liter_product, employee):
    movement = _saida(db, liter_product, 4, employee)
    edited = stock_service.edit_movement(db, movement.id, {"quantity": 10.008})
    assert edited.quantity == pytest.approx(10)
    assert _quantity(db, liter_product.id) == 0
    assert check_all(db)[0].consistent


def test_saida_requires_active_employee(db, liter_product, inactive_employee):
    with pytest.raises(EmployeeRequired):
        stock_service.register_movement(db, product_id=liter_product.id, type="saida", quantity=1)
    with pytest.raises(InactiveEmployee):
        _saida(db, liter_product, 1, inactive_employee)
    assert db.query(Movement).count() == 0


def test_incompatible_unit_rejected(db, liter_product):
    with pytest.raises(IncompatibleUnits):
        _entrada(db, liter_product, 1, unit="kg")


def test_invalid_quantity_and_unknown_product(db, liter_product):
    with pytest.raises(InvalidQuantity):
        _entrada(db, liter_product, 0)
    with pytest.raises(ProductNotFound):
        stock_service.register_movement(db, product_id=9999, type="entrada", quantity=1)


def test_edit_movement_reapplies_effect(db, liter_product, employee):
    movement = _saida(db, liter_product, 2, employee)
    assert _quantity(db, liter_product.id) == pytest.approx(8)

    stock_service.edit_movement(db, movement.id, {"quantity": 3})
    assert _quantity(db, liter_product.id) == pytest.approx(7)

    stock_service.edit_movement(db, movement.id, {"type": MovementType.ENTRADA})
    assert _quantity(db, liter_product.id) == pytest.approx(13)

    stock_service.edit_movement(db, movement.id, {"quantity": 1500, "unit": "ml"})
    assert _quantity(db, liter_product.id) == pytest.approx(11.5)


def test_edit_with_empty_type_keeps_current_type(db, liter_product, employee):
    movement = _saida(db, liter_product, 2, employee)
    edited = stock_service.edit_movement(db, movement.id, {"type": None, "quantity": 3})
    assert edited.type == MovementType.SAIDA
    assert _quantity(db, liter_product.id) == pytest.approx(7)


def test_edit_that_would_go_negative_is_rolled_back(db, liter_product, employee):
    movement = _saida(db, liter_product, 2, employee)
    with pytest.raises(InsufficientStock):
        stock_service.edit_movement(db, movement.id, {"quantity": 50})
    assert _quantity(db, liter_product.id) == pytest.approx(8)
    db.expire_all()
    assert db.query(Movement).one().quantity == 2


def test_delete_reverses_effect_once(db, liter_product, employee):
    movement = _saida(db, liter_product, 4, employee)
    deleted, compensation = stock_service.delete_movement(db, movement.id)
    assert deleted.deleted is True
    assert deleted.deleted_at is not None
    assert compensation is None
    assert _quantity(db, liter_product.id) == pytest.approx(10)

    # second delete is a no-op
    again, compensation = stock_service.delete_movement(db, movement.id)
    assert again.deleted is True
    assert compensation is None
    assert _quantity(db, liter_product.id) == pytest.approx(10)


def test_deleting_consumed_entrada_creates_compensation(db, liter_product, employee):
    entrada = _entrada(db, liter_product, 5)
    _saida(db, liter_product, 14, employee)
    assert _quantity(db, liter_product.id) == pytest.approx(1)

    deleted, compensation = stock_service.delete_movement(db, entrada.id)
    assert compensation is not None
    assert compensation.type == MovementType.ENTRADA
    assert compensation.quantity == pytest.approx(4)
    assert compensation.compensation_for_id == entrada.id
    assert compensation.notes == f"Compensação automática para exclusão da movimentação {entrada.id}"
    assert _quantity(db, liter_product.id) == 0
    assert db.query(Movement).filter(Movement.compensation_for_id.isnot(None)).count() == 1


def test_deleted_movement_cannot_be_edited(db, liter_product):
    movement = _entrada(db, liter_product, 1)
    stock_service.delete_movement(db, movement.id)
    with pytest.raises(MovementDeleted):
        stock_service.edit_movement(db, movement.id, {"quantity": 2})
    with pytest.raises(MovementNotFound):
        stock_service.delete_movement(db, 4242)


def test_update_product_quantity_goes_through_adjustment(db, liter_product):
    product = db.query(Product).filter(Product.id == liter_product.id).one()
    stock_service.update_product(db, product, {"quantity": 4, "name": "Detergente neutro"})

    assert _quantity(db, liter_product.id) == pytest.approx(4)
    adjustment = db.query(Movement).one()
    assert adjustment.type == MovementType.SAIDA
    assert adjustment.quantity == pytest.approx(6)
    assert adjustment.notes == stock_service.ADJUSTMENT_NOTE


def test_adjust_to_current_level_records_nothing(db, liter_product):
    assert stock_service.adjust_stock_level(db, liter_product.id, 10) is None
    # the locked row is released right away
    assert not db.in_transaction()
    assert db.query(Movement).count() == 0


def test_unit_change_refused_with_live_movements(db, liter_product):
    _entrada(db, liter_product, 1)
    product = db.query(Product).filter(Product.id == liter_product.id).one()
    with pytest.raises(IncompatibleUnits):
        stock_service.update_product(db, product, {"unit": "kg"})
    # synonym of the same unit is fine
    stock_service.update_product(db, product, {"unit": "Litros"})


def test_invariant_holds_after_mixed_operations(db, liter_product, unit_product, employee):
    a = _entrada(db, liter_product, 2500, unit="ml")
    b = _saida(db, liter_product, 3, employee)
    _saida(db, unit_product, 2, employee)
    c = _entrada(db, unit_product, 4)
    stock_service.edit_movement(db, b.id, {"quantity": 1200, "unit": "ml"})
    stock_service.delete_movement(db, a.id)
    stock_service.delete_movement(db, c.id)
    product = db.query(Product).filter(Product.id == unit_product.id).one()
    stock_service.update_product(db, product, {"quantity": 9})

    checks = check_all(db)
    assert len(checks) == 2
    assert all(c.consistent for c in checks)
    assert _quantity(db, liter_product.id) == pytest.approx(8.8)
    assert _quantity(db, unit_product.id) == pytest.approx(9)
