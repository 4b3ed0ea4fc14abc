"""Tests for the product catalog and recipe checks."""

import pytest

from upholstery_tracker.models import RecipeItem
from upholstery_tracker.services import inventory_service, order_service, product_service
from upholstery_tracker.services.exceptions import ProductNotFound, ValidationError


class TestCreateProduct:
    def test_recipe_is_saved_with_product(self, test_db, seat_cover, vinyl, foam):
        product = product_service.get_product(seat_cover.id)

        assert product.name == "Seat Cover"
        assert [(item.material_id, item.quantity) for item in product.recipe] == [
            (vinyl.id, 3.0),
            (foam.id, 1.0),
        ]
        assert product.to_dict()["recipe"][0] == {"material_id": vinyl.id, "quantity": 3.0}

    def test_empty_recipe_rejected(self, test_db):
        with pytest.raises(ValidationError) as exc_info:
            product_service.create_product("Headliner", 150.0, [])
        assert "recipe must contain at least one material" in exc_info.value.errors

    def test_every_bad_line_reported(self, test_db, vinyl):
        with pytest.raises(ValidationError) as exc_info:
            product_service.create_product(
                "Door Panel",
                90.0,
                [
                    {"material_id": vinyl.id, "quantity": 0},
                    {"material_id": 999, "quantity": 1.0},
                ],
            )

        assert exc_info.value.errors == [
            "recipe line 1: quantity must be positive",
            "recipe line 2: material 999 not found",
        ]
        assert product_service.list_products() == []

    def test_materials_of_other_tenants_are_unknown(self, test_db, vinyl):
        with pytest.raises(ValidationError):
            product_service.create_product(
                "Door Panel",
                90.0,
                [{"material_id": vinyl.id, "quantity": 1.0}],
                tenant_id="workshop-2",
            )

    def test_repeated_material_lines_are_merged(self, test_db, vinyl, foam):
        product = product_service.create_product(
            "Bench Seat",
            300.0,
            [
                {"material_id": vinyl.id, "quantity": 6.0},
                {"material_id": foam.id, "quantity": 1.0},
                {"material_id": vinyl.id, "quantity": 6.0},
            ],
        )

        assert [(item.material_id, item.quantity) for item in product.recipe] == [
            (vinyl.id, 12.0),
            (foam.id, 1.0),
        ]
        shortfalls = product_service.validate_availability(product.id)
        assert [(s.material_id, s.required, s.available) for s in shortfalls] == [
            (vinyl.id, 12.0, 10.0)
        ]


class TestUpdateAndDelete:
    def test_update_price_and_stock(self, test_db, seat_cover):
        product = product_service.update_product(
            seat_cover.id, {"suggested_price": 240.0, "stock": 3}
        )
        assert product.suggested_price == 240.0
        assert product.stock == 3

    def test_update_rejects_negative_price(self, test_db, seat_cover):
        with pytest.raises(ValidationError):
            product_service.update_product(seat_cover.id, {"suggested_price": -1})

    def test_delete_keeps_order_history(self, test_db, seat_cover):
        order = order_service.create_order(seat_cover.id, 200.0)

        product_service.delete_product(seat_cover.id)

        with pytest.raises(ProductNotFound):
            product_service.get_product(seat_cover.id)
        kept = order_service.get_order(order.id)
        assert kept.product_id is None
        assert kept.job_type == "Seat Cover"
        assert kept.cost_of_goods == pytest.approx(27.5)


class TestEstimateCost:
    def test_uses_live_average_cost(self, test_db, seat_cover, vinyl):
        # 3 m x 5.00 + 1 sheet x 12.50
        assert product_service.estimate_cost(seat_cover.id) == pytest.approx(27.5)

        inventory_service.record_purchase(vinyl.id, 10.0, 10.0)

        # vinyl now 3.00/m
        assert product_service.estimate_cost(seat_cover.id) == pytest.approx(21.5)


class TestValidateAvailability:
    def test_available(self, test_db, seat_cover):
        assert product_service.validate_availability(seat_cover.id) == []

    def test_reports_all_short_materials(self, test_db, seat_cover, vinyl, foam):
        inventory_service.register_waste(vinyl.id, 9.0)
        inventory_service.register_waste(foam.id, 4.0)

        shortfalls = product_service.validate_availability(seat_cover.id)

        assert [(s.material_name, s.required, s.available) for s in shortfalls] == [
            ("Black Vinyl", 3.0, 1.0),
            ("Seat Foam 2cm", 1.0, 0.0),
        ]

    def test_missing_material_is_unknown(self, test_db, seat_cover, foam):
        # Point the foam line at a material outside the tenant
        stranger = inventory_service.create_material(
            "Seat Foam 2cm", "Foam", "Sheet", tenant_id="workshop-2"
        )
        session = test_db()
        line = session.query(RecipeItem).filter_by(material_id=foam.id).one()
        line.material_id = stranger.id
        session.commit()
        session.close()

        shortfalls = product_service.validate_availability(seat_cover.id)

        assert len(shortfalls) == 1
        assert shortfalls[0].material_name == "Unknown material"
        assert shortfalls[0].available == 0.0

    def test_unknown_product(self, test_db):
        with pytest.raises(ProductNotFound):
            product_service.validate_availability(123)
