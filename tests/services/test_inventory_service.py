"""Tests for the weighted-average material ledger."""

from datetime import datetime

import pytest

from upholstery_tracker.models import InventoryMovement, Material
from upholstery_tracker.models.enums import (
    MaterialKind,
    MovementKind,
    ReferenceType,
    UnitOfMeasure,
)
from upholstery_tracker.services import inventory_service
from upholstery_tracker.services.exceptions import (
    InsufficientStock,
    MaterialNotFound,
    ValidationError,
)


class TestCreateMaterial:
    def test_starts_empty(self, test_db):
        material = inventory_service.create_material(
            "Grey Alcantara", MaterialKind.ALCANTARA, UnitOfMeasure.METER, min_stock=1.5
        )

        assert material.id is not None
        assert material.tenant_id == "default"
        assert material.quantity_on_hand == 0.0
        assert material.avg_unit_cost == 0.0
        assert material.min_stock == 1.5

    def test_accepts_enum_values(self, test_db):
        material = inventory_service.create_material("Nylon Thread", "Thread", "Roll")
        assert material.kind is MaterialKind.THREAD
        assert material.unit is UnitOfMeasure.ROLL

    def test_rejects_blank_name_and_bad_kind(self, test_db):
        with pytest.raises(ValidationError) as exc_info:
            inventory_service.create_material("  ", "Plywood", UnitOfMeasure.UNIT)

        errors = exc_info.value.errors
        assert "name is required" in errors
        assert "kind 'Plywood' is not valid" in errors

    def test_name_is_unique_per_tenant(self, test_db, vinyl):
        with pytest.raises(ValidationError):
            inventory_service.create_material("Black Vinyl", "Vinyl", "Meter")

        other = inventory_service.create_material(
            "Black Vinyl", "Vinyl", "Meter", tenant_id="workshop-2"
        )
        assert other.tenant_id == "workshop-2"


class TestGetAndUpdateMaterial:
    def test_get_is_tenant_scoped(self, test_db, vinyl):
        assert inventory_service.get_material(vinyl.id).name == "Black Vinyl"
        with pytest.raises(MaterialNotFound) as exc_info:
            inventory_service.get_material(vinyl.id, tenant_id="workshop-2")
        assert exc_info.value.material_id == vinyl.id

    def test_list_materials_ordered_by_name(self, test_db, vinyl, foam):
        names = [m.name for m in inventory_service.list_materials()]
        assert names == ["Black Vinyl", "Seat Foam 2cm"]

    def test_update_descriptive_fields(self, test_db, vinyl):
        updated = inventory_service.update_material(
            vinyl.id, {"name": "Black Marine Vinyl", "min_stock": 4.0}
        )
        assert updated.name == "Black Marine Vinyl"
        assert updated.min_stock == 4.0
        assert updated.quantity_on_hand == 10.0

    def test_quantity_and_cost_cannot_be_updated(self, test_db, vinyl):
        with pytest.raises(ValidationError) as exc_info:
            inventory_service.update_material(
                vinyl.id, {"quantity_on_hand": 99, "avg_unit_cost": 1.0}
            )
        assert "quantity_on_hand cannot be updated directly" in exc_info.value.errors


class TestRecordPurchase:
    def test_blends_average_cost(self, test_db, vinyl):
        material = inventory_service.record_purchase(vinyl.id, 10.0, 40.0)

        assert material.quantity_on_hand == pytest.approx(20.0)
        assert material.avg_unit_cost == pytest.approx(4.5)

    def test_sequential_purchases_match_combined_purchase(self, test_db):
        a = inventory_service.create_material("Vinyl A", "Vinyl", "Meter")
        b = inventory_service.create_material("Vinyl B", "Vinyl", "Meter")

        inventory_service.record_purchase(a.id, 3.0, 14.0)
        a = inventory_service.record_purchase(a.id, 7.0, 23.5)
        b = inventory_service.record_purchase(b.id, 10.0, 37.5)

        assert a.quantity_on_hand == pytest.approx(b.quantity_on_hand)
        assert a.avg_unit_cost == pytest.approx(b.avg_unit_cost)

    def test_links_expense_reference(self, test_db, vinyl):
        inventory_service.record_purchase(vinyl.id, 2.0, 8.0, reference_id=42)

        movement = inventory_service.list_movements(vinyl.id, kind=MovementKind.PURCHASE)[0]
        assert movement.reference_id == 42
        assert movement.reference_type is ReferenceType.EXPENSE

    @pytest.mark.parametrize("quantity,total_cost", [(0, 10.0), (-1, 10.0), (1, -5.0)])
    def test_rejects_invalid_values(self, test_db, vinyl, quantity, total_cost):
        with pytest.raises(ValidationError):
            inventory_service.record_purchase(vinyl.id, quantity, total_cost)

    def test_unknown_material(self, test_db):
        with pytest.raises(MaterialNotFound):
            inventory_service.record_purchase(999, 1.0, 1.0)


class TestRegisterWaste:
    def test_conserves_total_value(self, test_db, vinyl):
        inventory_service.record_purchase(vinyl.id, 10.0, 40.0)

        material = inventory_service.register_waste(vinyl.id, 5.0)

        assert material.quantity_on_hand == pytest.approx(15.0)
        assert material.avg_unit_cost == pytest.approx(6.0)
        assert material.total_value == pytest.approx(90.0)

    def test_waste_movement_has_no_cost(self, test_db, vinyl):
        inventory_service.register_waste(vinyl.id, 1.0)

        movement = inventory_service.list_movements(vinyl.id, kind=MovementKind.WASTE)[0]
        assert movement.quantity == 1.0
        assert movement.total_cost == 0.0

    def test_wasting_all_stock_resets_cost(self, test_db, vinyl):
        material = inventory_service.register_waste(vinyl.id, 10.0)
        assert material.quantity_on_hand == 0.0
        assert material.avg_unit_cost == 0.0

    def test_cannot_waste_more_than_on_hand(self, test_db, vinyl):
        with pytest.raises(InsufficientStock) as exc_info:
            inventory_service.register_waste(vinyl.id, 10.5)

        shortfall = exc_info.value.shortfalls[0]
        assert shortfall.material_name == "Black Vinyl"
        assert shortfall.available == 10.0
        assert inventory_service.get_material(vinyl.id).quantity_on_hand == 10.0


class TestRegisterAssetIntake:
    def test_creates_finished_product_material(self, test_db):
        material = inventory_service.register_asset_intake(
            "Returned Seat Cover", 1.0, 120.0, order_reference=7
        )

        assert material.kind is MaterialKind.FINISHED_PRODUCT
        assert material.unit is UnitOfMeasure.UNIT
        assert material.quantity_on_hand == 1.0
        assert material.avg_unit_cost == 120.0

        movement = inventory_service.list_movements(material.id)[0]
        assert movement.kind is MovementKind.ASSET_INTAKE
        assert movement.origin == "recovered_asset"
        assert movement.reference_id == 7
        assert movement.reference_type is ReferenceType.ORDER

    def test_blends_into_existing_material(self, test_db, vinyl):
        material = inventory_service.register_asset_intake(
            "Black Vinyl", 10.0, 30.0, origin_note="donated offcuts"
        )

        assert material.id == vinyl.id
        assert material.quantity_on_hand == pytest.approx(20.0)
        assert material.avg_unit_cost == pytest.approx(4.0)

        movement = inventory_service.list_movements(vinyl.id, kind=MovementKind.ASSET_INTAKE)[0]
        assert movement.origin == "asset: donated offcuts"
        assert movement.reference_type is None


class TestRegisterCorrection:
    def test_removes_quantity_and_value(self, test_db, vinyl):
        inventory_service.record_purchase(vinyl.id, 10.0, 40.0)

        cost_removed = inventory_service.register_correction(vinyl.id, 2.0, "miscounted roll")

        material = inventory_service.get_material(vinyl.id)
        assert cost_removed == pytest.approx(9.0)
        assert material.quantity_on_hand == pytest.approx(18.0)
        assert material.avg_unit_cost == pytest.approx(4.5)

    def test_correction_movement_is_negative(self, test_db, vinyl):
        inventory_service.register_correction(vinyl.id, 2.0, "miscounted roll")

        movement = inventory_service.list_movements(vinyl.id, kind="correction")[0]
        assert movement.quantity == -2.0
        assert movement.total_cost == pytest.approx(-10.0)
        assert movement.origin == "miscounted roll"

    def test_cannot_remove_more_than_on_hand(self, test_db, vinyl):
        with pytest.raises(InsufficientStock):
            inventory_service.register_correction(vinyl.id, 11.0, "typo")


class TestMovementLog:
    def test_newest_first(self, test_db, vinyl):
        inventory_service.register_waste(vinyl.id, 1.0, occurred_at=datetime(2030, 1, 2))
        inventory_service.register_waste(vinyl.id, 1.0, occurred_at=datetime(2030, 1, 1))

        movements = inventory_service.list_movements(vinyl.id)

        assert movements[0].date == datetime(2030, 1, 2)
        assert [m.kind for m in movements[1:]] == [MovementKind.WASTE, MovementKind.PURCHASE]

    def test_failed_append_keeps_material_change(self, test_db, vinyl, caplog):
        """A movement that can't be written is logged and skipped."""
        session = test_db()
        material = session.get(Material, vinyl.id)
        material.quantity_on_hand = 9.0

        # quantity is NOT NULL
        movement = inventory_service.append_movement(
            session, material, MovementKind.WASTE, None, 0.0
        )
        session.commit()
        session.close()

        assert movement is None
        assert "append_movement: error" in caplog.text
        assert inventory_service.get_material(vinyl.id).quantity_on_hand == 9.0
        assert session.query(InventoryMovement).filter_by(kind=MovementKind.WASTE).count() == 0
