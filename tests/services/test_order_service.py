"""Tests for the work order and payment ledgers."""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from upholstery_tracker.models import InventoryMovement, Order, OrderItem, Payment
from upholstery_tracker.models.enums import (
    InvoiceType,
    MovementKind,
    OrderState,
    PaymentMethod,
    ReferenceType,
)
from upholstery_tracker.services import inventory_service, order_service, product_service
from upholstery_tracker.services.exceptions import (
    InsufficientStock,
    InvalidAmount,
    InvalidStateTransition,
    OrderNotFound,
    PersistenceFailure,
    ProductNotFound,
    ValidationError,
)


def _count(test_db, model):
    session = test_db()
    try:
        return session.query(model).count()
    finally:
        session.close()


class TestCreateOrder:
    def test_freezes_cost_and_consumes_recipe(self, test_db, seat_cover, vinyl, foam):
        order = order_service.create_order(
            seat_cover.id,
            200.0,
            down_payment=50.0,
            invoice_type=InvoiceType.INVOICE,
            client_name="R. Alvarez",
            vehicle="2012 Corolla",
        )

        assert order.state is OrderState.IN_PROGRESS
        assert order.balance == 150.0
        assert order.job_type == "Seat Cover"
        assert [(i.material_id, i.quantity, i.computed_cost) for i in order.materials_used] == [
            (vinyl.id, 3.0, 15.0),
            (foam.id, 1.0, 12.5),
        ]
        assert order.cost_of_goods == pytest.approx(27.5)

        vinyl_after = inventory_service.get_material(vinyl.id)
        assert vinyl_after.quantity_on_hand == pytest.approx(7.0)
        assert vinyl_after.avg_unit_cost == pytest.approx(5.0)

    def test_appends_consumption_movements(self, test_db, seat_cover, vinyl):
        order = order_service.create_order(seat_cover.id, 200.0)

        movement = inventory_service.list_movements(vinyl.id, kind=MovementKind.CONSUMPTION)[0]
        assert movement.quantity == 3.0
        assert movement.total_cost == pytest.approx(15.0)
        assert movement.reference_id == order.id
        assert movement.reference_type is ReferenceType.ORDER

    def test_snapshot_survives_later_purchases(self, test_db, seat_cover, vinyl):
        order = order_service.create_order(seat_cover.id, 200.0)

        inventory_service.record_purchase(vinyl.id, 7.0, 700.0)

        reloaded = order_service.get_order(order.id)
        assert reloaded.materials_used[0].computed_cost == pytest.approx(15.0)
        assert product_service.estimate_cost(seat_cover.id) > 27.5

    def test_shortage_has_no_side_effects(self, test_db, seat_cover, vinyl, foam):
        inventory_service.register_waste(vinyl.id, 8.0)
        inventory_service.register_waste(foam.id, 4.0)
        movements_before = _count(test_db, InventoryMovement)

        with pytest.raises(InsufficientStock) as exc_info:
            order_service.create_order(seat_cover.id, 200.0)

        assert [s.material_id for s in exc_info.value.shortfalls] == [vinyl.id, foam.id]
        assert "Black Vinyl" in str(exc_info.value)
        assert _count(test_db, Order) == 0
        assert _count(test_db, OrderItem) == 0
        assert _count(test_db, InventoryMovement) == movements_before
        assert inventory_service.get_material(vinyl.id).quantity_on_hand == pytest.approx(2.0)

    def test_repeated_recipe_material_checked_in_total(self, test_db, vinyl):
        product = product_service.create_product(
            "Bench Seat",
            300.0,
            [
                {"material_id": vinyl.id, "quantity": 6.0},
                {"material_id": vinyl.id, "quantity": 6.0},
            ],
        )

        with pytest.raises(InsufficientStock) as exc_info:
            order_service.create_order(product.id, 300.0)

        shortfall = exc_info.value.shortfalls[0]
        assert (shortfall.material_id, shortfall.required, shortfall.available) == (
            vinyl.id,
            12.0,
            10.0,
        )
        assert _count(test_db, Order) == 0
        assert inventory_service.get_material(vinyl.id).quantity_on_hand == 10.0

    def test_store_failure_rolls_back_everything(self, test_db, seat_cover, vinyl, monkeypatch):
        calls = []

        def _failing_deduct(material, quantity):
            calls.append(material.id)
            if len(calls) == 2:
                raise OperationalError("UPDATE materials", {}, Exception("disk I/O error"))
            material.quantity_on_hand -= quantity

        monkeypatch.setattr(order_service, "_deduct_stock", _failing_deduct)

        with pytest.raises(PersistenceFailure) as exc_info:
            order_service.create_order(seat_cover.id, 200.0)

        assert isinstance(exc_info.value.original_error, OperationalError)
        assert _count(test_db, Order) == 0
        assert _count(test_db, OrderItem) == 0
        assert inventory_service.get_material(vinyl.id).quantity_on_hand == 10.0

    @pytest.mark.parametrize(
        "sale_price,down_payment",
        [(-1.0, 0.0), (100.0, -5.0), (100.0, 150.0)],
    )
    def test_rejects_invalid_prices(self, test_db, seat_cover, sale_price, down_payment):
        with pytest.raises(ValidationError):
            order_service.create_order(seat_cover.id, sale_price, down_payment=down_payment)
        assert _count(test_db, Order) == 0


class TestTransitionState:
    def test_moves_forward(self, test_db, seat_cover):
        order = order_service.create_order(seat_cover.id, 200.0)

        order = order_service.transition_state(order.id, OrderState.FINISHED)
        order = order_service.transition_state(order.id, "delivered")

        assert order.state is OrderState.DELIVERED

    def test_terminal_states_only_through_cancel(self, test_db, seat_cover):
        order = order_service.create_order(seat_cover.id, 200.0)

        with pytest.raises(InvalidStateTransition):
            order_service.transition_state(order.id, OrderState.RETURNED)

    def test_cancelled_order_cannot_move(self, test_db, seat_cover):
        order = order_service.create_order(seat_cover.id, 200.0)
        order_service.cancel_order(order.id, OrderState.MANUFACTURING_ERROR)

        with pytest.raises(InvalidStateTransition) as exc_info:
            order_service.transition_state(order.id, OrderState.FINISHED)
        assert exc_info.value.current is OrderState.MANUFACTURING_ERROR

    def test_unknown_order(self, test_db):
        with pytest.raises(OrderNotFound) as exc_info:
            order_service.transition_state(41, OrderState.FINISHED)
        assert exc_info.value.order_id == 41


class TestRegisterPayment:
    def test_settles_order_in_full(self, test_db, seat_cover):
        order = order_service.create_order(seat_cover.id, 200.0, down_payment=50.0)

        order = order_service.register_payment(
            order.id, 120.0, method=PaymentMethod.TRANSFER, has_invoice=True
        )

        assert order.balance == 0.0
        assert order.state is OrderState.FULLY_PAID
        payments = order_service.list_payments(order.id)
        assert [(p.amount, p.method, p.has_invoice) for p in payments] == [
            (120.0, PaymentMethod.TRANSFER, True)
        ]

    def test_zero_amount_settles_without_payment(self, test_db, seat_cover):
        order = order_service.create_order(seat_cover.id, 200.0)

        order = order_service.register_payment(order.id, 0.0)

        assert order.state is OrderState.FULLY_PAID
        assert order_service.list_payments(order.id) == []

    @pytest.mark.parametrize("amount", [-0.01, 200.01])
    def test_amount_out_of_range(self, test_db, seat_cover, amount):
        order = order_service.create_order(seat_cover.id, 200.0)

        with pytest.raises(InvalidAmount) as exc_info:
            order_service.register_payment(order.id, amount)

        assert exc_info.value.maximum == 200.0
        assert order_service.get_order(order.id).state is OrderState.IN_PROGRESS

    def test_cancelled_order_rejects_payment(self, test_db, seat_cover):
        order = order_service.create_order(seat_cover.id, 200.0)
        order_service.cancel_order(order.id, OrderState.RETURNED)

        with pytest.raises(InvalidStateTransition):
            order_service.register_payment(order.id, 100.0)


class TestCancelOrder:
    def test_reverses_payments_and_keeps_inventory(self, test_db, seat_cover, vinyl):
        order = order_service.create_order(seat_cover.id, 200.0)
        order_service.register_payment(order.id, 200.0)

        order = order_service.cancel_order(order.id, "returned")

        assert order.state is OrderState.RETURNED
        assert order.balance == 0.0
        assert _count(test_db, Payment) == 0
        assert len(order.materials_used) == 2
        assert inventory_service.get_material(vinyl.id).quantity_on_hand == pytest.approx(7.0)

    def test_reason_must_be_cancellation_state(self, test_db, seat_cover):
        order = order_service.create_order(seat_cover.id, 200.0)

        with pytest.raises(ValidationError):
            order_service.cancel_order(order.id, OrderState.FINISHED)

    def test_cannot_cancel_twice(self, test_db, seat_cover):
        order = order_service.create_order(seat_cover.id, 200.0)
        order_service.cancel_order(order.id, OrderState.RETURNED)

        with pytest.raises(InvalidStateTransition):
            order_service.cancel_order(order.id, OrderState.MANUFACTURING_ERROR)


class TestDeleteOrder:
    def test_ledger_scenario(self, test_db, vinyl):
        """Purchase, waste, consume, then erase the order."""
        inventory_service.record_purchase(vinyl.id, 10.0, 40.0)
        material = inventory_service.get_material(vinyl.id)
        assert (material.quantity_on_hand, material.avg_unit_cost) == pytest.approx((20.0, 4.5))

        material = inventory_service.register_waste(vinyl.id, 5.0)
        assert (material.quantity_on_hand, material.avg_unit_cost) == pytest.approx((15.0, 6.0))

        product = product_service.create_product(
            "Armrest Cover", 60.0, [{"material_id": vinyl.id, "quantity": 3.0}]
        )
        order = order_service.create_order(product.id, 60.0)
        assert order.cost_of_goods == pytest.approx(18.0)
        material = inventory_service.get_material(vinyl.id)
        assert (material.quantity_on_hand, material.avg_unit_cost) == pytest.approx((12.0, 6.0))
        assert material.total_value == pytest.approx(72.0)

        order_service.delete_order(order.id)

        material = inventory_service.get_material(vinyl.id)
        assert (material.quantity_on_hand, material.avg_unit_cost) == pytest.approx((15.0, 6.0))
        assert material.total_value == pytest.approx(90.0)

    def test_erases_order_payments_and_movements(self, test_db, seat_cover, vinyl):
        order = order_service.create_order(seat_cover.id, 200.0)
        order_service.register_payment(order.id, 200.0, has_invoice=True)

        order_service.delete_order(order.id)

        with pytest.raises(OrderNotFound):
            order_service.get_order(order.id)
        assert _count(test_db, OrderItem) == 0
        assert _count(test_db, Payment) == 0
        assert inventory_service.list_movements(kind=MovementKind.CONSUMPTION) == []
        assert len(inventory_service.list_movements(vinyl.id)) == 1

    def test_unknown_order(self, test_db):
        with pytest.raises(OrderNotFound):
            order_service.delete_order(5)


class TestListOrders:
    def test_newest_first_and_state_filter(self, test_db, seat_cover):
        first = order_service.create_order(
            seat_cover.id, 200.0, created_at=datetime(2026, 3, 1, 9, 0)
        )
        second = order_service.create_order(
            seat_cover.id, 180.0, created_at=datetime(2026, 3, 2, 9, 0)
        )
        order_service.transition_state(first.id, OrderState.FINISHED)

        assert [o.id for o in order_service.list_orders()] == [second.id, first.id]
        assert [o.id for o in order_service.list_orders(state=OrderState.FINISHED)] == [first.id]

    def test_tenant_isolation(self, test_db, seat_cover):
        order_service.create_order(seat_cover.id, 200.0)

        assert order_service.list_orders(tenant_id="workshop-2") == []
        with pytest.raises(ProductNotFound):
            order_service.create_order(seat_cover.id, 200.0, tenant_id="workshop-2")
