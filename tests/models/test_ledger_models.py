"""Tests for the ORM models and their enums."""

import pytest
from sqlalchemy.exc import IntegrityError

from upholstery_tracker.models import (
    Expense,
    Material,
    Order,
    OrderItem,
    Payment,
)
from upholstery_tracker.models.enums import (
    ExpenseCategory,
    ExpenseTreatment,
    MaterialKind,
    OrderState,
    UnitOfMeasure,
)


class TestEnums:
    def test_only_material_purchase_is_capitalized(self):
        capitalized = [c for c in ExpenseCategory if c.treatment is ExpenseTreatment.CAPITALIZED]
        assert capitalized == [ExpenseCategory.MATERIAL_PURCHASE]

    def test_terminal_states(self):
        terminal = {s for s in OrderState if s.is_terminal}
        assert terminal == {OrderState.RETURNED, OrderState.MANUFACTURING_ERROR}


class TestMaterial:
    def test_value_and_minimum(self):
        material = Material(
            tenant_id="default",
            name="Black Vinyl",
            kind=MaterialKind.VINYL,
            unit=UnitOfMeasure.METER,
            quantity_on_hand=4.0,
            avg_unit_cost=2.5,
            min_stock=4.0,
        )

        assert material.total_value == 10.0
        assert material.is_below_minimum is True
        assert "qty=4.0" in repr(material)

    def test_to_dict_serializes_enums(self, test_db):
        session = test_db()
        material = Material(
            tenant_id="default",
            name="Beige Leather",
            kind=MaterialKind.LEATHER,
            unit=UnitOfMeasure.METER,
            quantity_on_hand=2.0,
            avg_unit_cost=30.0,
        )
        session.add(material)
        session.commit()

        data = material.to_dict()

        assert data["kind"] == "Leather"
        assert data["unit"] == "Meter"
        assert data["total_value"] == 60.0
        assert data["tenant_id"] == "default"
        assert len(data["uuid"]) == 36
        session.close()

    def test_negative_stock_rejected(self, test_db):
        session = test_db()
        session.add(Material(tenant_id="default", name="Foam", quantity_on_hand=-1.0))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()
        session.close()

    def test_names_unique_per_tenant(self, test_db):
        session = test_db()
        session.add_all(
            [
                Material(tenant_id="a", name="Foam"),
                Material(tenant_id="b", name="Foam"),
            ]
        )
        session.commit()

        session.add(Material(tenant_id="a", name="Foam"))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()
        session.close()


class TestOrder:
    def test_cost_of_goods_sums_frozen_lines(self, test_db):
        session = test_db()
        material = Material(tenant_id="default", name="Vinyl", quantity_on_hand=10.0)
        session.add(material)
        session.flush()

        order = Order(tenant_id="default", sale_price=150.0, balance=150.0, job_type="Seat Cover")
        order.materials_used.append(
            OrderItem(tenant_id="default", material_id=material.id, quantity=2.0, computed_cost=8.0)
        )
        order.materials_used.append(
            OrderItem(tenant_id="default", material_id=material.id, quantity=1.0, computed_cost=4.5)
        )
        order.payments.append(Payment(tenant_id="default", amount=150.0))
        session.add(order)
        session.commit()

        assert order.state is OrderState.IN_PROGRESS
        assert order.cost_of_goods == 12.5

        data = order.to_dict(include_relationships=True)
        assert data["state"] == "in_progress"
        assert data["materials_used"][1] == {
            "material_id": material.id,
            "quantity": 1.0,
            "computed_cost": 4.5,
        }
        assert data["payments"][0]["amount"] == 150.0
        session.close()

    def test_payment_amount_must_be_positive(self, test_db):
        session = test_db()
        order = Order(tenant_id="default", sale_price=10.0)
        order.payments.append(Payment(tenant_id="default", amount=0.0))
        session.add(order)
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()
        session.close()


def test_expense_treatment():
    rent = Expense(tenant_id="default", name="Rent", category=ExpenseCategory.RENT, amount=1.0)
    vinyl = Expense(
        tenant_id="default",
        name="Vinyl",
        category=ExpenseCategory.MATERIAL_PURCHASE,
        amount=1.0,
    )

    assert rent.is_capitalized is False
    assert vinyl.is_capitalized is True
