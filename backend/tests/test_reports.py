from datetime import date, datetime, time, timedelta, timezone

import pytest

from models.movement import Movement
from services import report_service, stock_service

WEDNESDAY = date(2024, 3, 13)
SAO_PAULO = timezone(timedelta(hours=-3))


@pytest.mark.parametrize("period, start, end", [
    ("today", date(2024, 3, 13), date(2024, 3, 13)),
    ("yesterday", date(2024, 3, 12), date(2024, 3, 12)),
    ("thisWeek", date(2024, 3, 11), date(2024, 3, 13)),
    ("lastWeek", date(2024, 3, 4), date(2024, 3, 10)),
    ("thisMonth", date(2024, 3, 1), date(2024, 3, 13)),
    ("lastMonth", date(2024, 2, 1), date(2024, 2, 29)),
    ("last30Days", date(2024, 2, 13), date(2024, 3, 13)),
])
def test_named_periods(period, start, end):
    got_start, got_end = report_service.resolve_period(period, today=WEDNESDAY, tz=timezone.utc)
    assert got_start == datetime.combine(start, time.min, tzinfo=timezone.utc)
    assert got_end == datetime.combine(end, time.max, tzinfo=timezone.utc)


def test_custom_and_specific_date():
    start, end = report_service.resolve_period("custom", date(2024, 1, 5), date(2024, 1, 7))
    assert (start.date(), end.date()) == (date(2024, 1, 5), date(2024, 1, 7))
    start, end = report_service.resolve_period("specificDate", date(2024, 1, 5))
    assert start.date() == end.date() == date(2024, 1, 5)

    with pytest.raises(ValueError):
        report_service.resolve_period("custom", date(2024, 1, 7), date(2024, 1, 5))
    with pytest.raises(ValueError):
        report_service.resolve_period("fortnight")


def _at(db, movement, when):
    db.query(Movement).filter(Movement.id == movement.id).update({Movement.created_at: when})
    db.commit()


def test_employee_outputs_skip_deleted_and_out_of_range(db, liter_product, unit_product, employee):
    a = stock_service.register_movement(db, product_id=liter_product.id, type="saida", quantity=2,
                                        employee_id=employee.id)
    b = stock_service.register_movement(db, product_id=liter_product.id, type="saida", quantity=500,
                                        unit="ml", employee_id=employee.id)
    c = stock_service.register_movement(db, product_id=unit_product.id, type="saida", quantity=1,
                                        employee_id=employee.id)
    d = stock_service.register_movement(db, product_id=unit_product.id, type="saida", quantity=1,
                                        employee_id=employee.id)
    for m in (a, b, c, d):
        _at(db, m, datetime(2024, 3, 13, 10, 0))
    _at(db, d, datetime(2024, 1, 1, 10, 0))
    stock_service.delete_movement(db, b.id)

    start, end = report_service.resolve_period("today", today=WEDNESDAY)
    [row] = report_service.employee_outputs(db, start, end)
    assert row["employee_code"] == "C001"
    assert [(l["product_code"], l["quantity"]) for l in row["products"]] == [("1001", 2), ("2001", 1)]
    assert row["total_quantity"] == 3


def test_movement_summary_groups_by_day(db, liter_product, employee):
    first = stock_service.register_movement(db, product_id=liter_product.id, type="entrada", quantity=1)
    second = stock_service.register_movement(db, product_id=liter_product.id, type="saida", quantity=250,
                                             unit="ml", employee_id=employee.id)
    _at(db, first, datetime(2024, 3, 12, 9, 0))
    _at(db, second, datetime(2024, 3, 13, 9, 0))

    start, end = report_service.resolve_period("thisWeek", today=WEDNESDAY)
    summary = report_service.movement_summary(db, start, end)
    assert [(d["date"], d["entradas"], d["saidas"]) for d in summary["items"]] == [
        (date(2024, 3, 12), 1, 0),
        (date(2024, 3, 13), 0, 1),
    ]
    [product] = summary["products"]
    assert product["entradas"] == pytest.approx(1)
    assert product["saidas"] == pytest.approx(0.25)


def test_periods_follow_local_days():
    start, end = report_service.resolve_period("today", today=WEDNESDAY, tz=SAO_PAULO)
    assert start == datetime(2024, 3, 13, 3, 0, tzinfo=timezone.utc)
    assert end == datetime(2024, 3, 14, 2, 59, 59, 999999, tzinfo=timezone.utc)


def test_late_evening_counts_on_local_day(db, liter_product, employee):
    # 22:30 in São Paulo is already the next day in UTC
    late = stock_service.register_movement(db, product_id=liter_product.id, type="saida", quantity=1,
                                           employee_id=employee.id)
    _at(db, late, datetime(2024, 3, 14, 1, 30))

    start, end = report_service.resolve_period("today", today=WEDNESDAY, tz=SAO_PAULO)
    [row] = report_service.employee_outputs(db, start, end)
    assert row["total_quantity"] == 1

    summary = report_service.movement_summary(db, start, end, tz=SAO_PAULO)
    assert [(d["date"], d["saidas"]) for d in summary["items"]] == [(date(2024, 3, 13), 1)]

    start, end = report_service.resolve_period("today", today=WEDNESDAY, tz=timezone.utc)
    assert report_service.employee_outputs(db, start, end) == []


def test_low_stock_and_dashboard(db, liter_product, unit_product, employee):
    stock_service.register_movement(db, product_id=unit_product.id, type="saida", quantity=5,
                                    employee_id=employee.id)
    low = report_service.low_stock_query(db).all()
    assert [p.code for p in low] == ["2001"]

    stats = report_service.dashboard(db)
    assert stats["total_products"] == 2
    assert stats["low_stock_products"] == 1
    assert stats["out_of_stock_products"] == 1
