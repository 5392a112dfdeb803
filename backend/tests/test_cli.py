"""CLI command tests (flask inventory ..., flask installments ...)."""

from datetime import datetime

import pytest

from salesdesk.models import Installment, Product
from salesdesk.services import sales_service
from tests.conftest import SALE_DATE, item, on_hand


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def test_register_product(runner, db_session):
    result = runner.invoke(args=[
        "inventory", "register-product",
        "--stock-code", "SKU-CLI", "--name", "Cli Widget",
        "--price", "12.50", "--vat", "8", "--min-stock", "2", "--opening", "7",
    ])

    assert result.exit_code == 0, result.output
    assert "SKU-CLI registered with 7 on hand" in result.output

    db_session.expire_all()
    product = db_session.query(Product).filter_by(stock_code="SKU-CLI").one()
    assert product.sale_price_cents == 1250
    assert product.vat_rate_bps == 800
    assert product.min_stock_level == 2


def test_register_duplicate_fails(runner, sku_a):
    result = runner.invoke(args=["inventory", "register-product", "--stock-code", "SKU-A", "--name", "Dup"])

    assert result.exit_code != 0
    assert "already exists" in result.output


def test_adjust(runner, sku_a):
    result = runner.invoke(args=["inventory", "adjust", "SKU-A", "--note", "recount", "--", "-3"])

    assert result.exit_code == 0, result.output
    assert on_hand("SKU-A") == 7


def test_adjust_below_zero_fails(runner, scarce):
    result = runner.invoke(args=["inventory", "adjust", "SKU-SCARCE", "--", "-5"])

    assert result.exit_code != 0
    assert "Insufficient stock" in result.output
    assert on_hand("SKU-SCARCE") == 2


def test_low_stock_listing(runner, db_session):
    assert "No active low stock alerts" in runner.invoke(args=["inventory", "low-stock"]).output

    runner.invoke(args=[
        "inventory", "register-product", "--stock-code", "SKU-LOW", "--name", "Low",
        "--min-stock", "5", "--opening", "1",
    ])
    result = runner.invoke(args=["inventory", "low-stock"])
    assert "SKU-LOW" in result.output


def test_sweep_overdue(runner, db_session, sku_a):
    sale = sales_service.create_sale(
        customer_ref="C-1",
        items=[item("SKU-A", 1, 900)],
        payment_method="credit_card",
        is_installment=True,
        installment_count=3,
        sale_date=SALE_DATE,
        session=db_session,
    )

    result = runner.invoke(args=["installments", "sweep-overdue", "--as-of", "2026-03-20"])

    assert result.exit_code == 0, result.output
    assert f"Sale {sale.id}: 2 installment(s) now overdue" in result.output

    db_session.expire_all()
    statuses = [
        i.status for i in db_session.query(Installment).filter_by(sale_id=sale.id).order_by(Installment.sequence)
    ]
    assert statuses == ["overdue", "overdue", "pending"]

    again = runner.invoke(args=["installments", "sweep-overdue", "--as-of", "2026-03-20"])
    assert "No installments became overdue" in again.output


def test_sweep_rejects_bad_date(runner, db_session):
    result = runner.invoke(args=["installments", "sweep-overdue", "--as-of", "soon"])
    assert result.exit_code != 0


def test_sweep_defaults_to_now(runner, db_session, sku_a):
    sales_service.create_sale(
        customer_ref=None,
        items=[item("SKU-A", 1, 200)],
        payment_method="credit_card",
        is_installment=True,
        installment_count=2,
        sale_date=datetime(2020, 1, 1),
        session=db_session,
    )

    result = runner.invoke(args=["installments", "sweep-overdue"])
    assert "2 installment(s) across 1 sale(s)" in result.output
