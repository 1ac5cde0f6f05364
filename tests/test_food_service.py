"""Tests for the food catalogue service."""

import pytest

from keyston.adapters.sqlite_store import SqliteStore
from keyston.domain.errors import NotFoundError, ValidationError
from keyston.services.foods import FoodService
from tests.conftest import FakeClock, make_result


def _food(name: str, **overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "name": name,
        "calories_per_serving": 60,
        "protein_g": 10,
        "carbs_g": 4,
        "fat_g": 0,
    }
    payload.update(overrides)
    return payload


def test_add_and_get_food(store: SqliteStore) -> None:
    service = FoodService(store)

    food = service.add_food(_food("Greek Yogurt", brand="Fage", barcode="5201"))

    assert service.get_food(food.id) == food
    assert food.data_source == "manual"
    assert (food.serving_size_default, food.serving_unit_default) == (100, "g")
    assert service.get_food_by_barcode("5201") == food
    assert service.get_food_by_barcode("0000") is None


def test_add_food_requires_name(store: SqliteStore) -> None:
    with pytest.raises(ValidationError) as info:
        FoodService(store).add_food(_food("  "))

    assert "name" in info.value.fields


@pytest.mark.parametrize(
    ("override", "field_name"),
    [
        ({"sodium_mg": float("nan")}, "sodium_mg"),
        ({"sugar_g": float("inf")}, "sugar_g"),
        ({"micronutrients": {"zinc": float("nan")}}, "micronutrients.zinc"),
    ],
)
def test_add_food_rejects_non_finite_amounts(
    store: SqliteStore, override: dict[str, object], field_name: str
) -> None:
    service = FoodService(store)

    with pytest.raises(ValidationError) as info:
        service.add_food({**_food("Oats"), **override})

    assert field_name in info.value.fields
    assert service.get_total_count() == 0


def test_search_foods_matches_name_or_brand(store: SqliteStore) -> None:
    service = FoodService(store)
    yogurt = service.add_food(_food("Greek Yogurt", brand="Fage"))
    service.add_food(_food("Banana"))
    fage_cheese = service.add_food(_food("Feta", brand="FAGE"))

    assert service.search_foods("yogurt") == [yogurt]
    assert {food.id for food in service.search_foods("fage")} == {
        yogurt.id,
        fage_cheese.id,
    }
    assert len(service.search_foods("a", limit=1)) == 1
    assert service.search_foods("  ") == []


def test_update_and_delete_food(store: SqliteStore) -> None:
    service = FoodService(store)
    food = service.add_food(_food("Yogurt"))

    updated = service.update_food(food.id, {"calories_per_serving": 80})

    assert updated.calories_per_serving == 80
    assert updated.name == "Yogurt"
    with pytest.raises(ValidationError):
        service.update_food(food.id, {"created_at": "2020-01-01"})
    with pytest.raises(NotFoundError):
        service.update_food("missing", {"name": "x"})

    service.delete_food(food.id)
    assert service.get_food(food.id) is None


def test_recent_foods_newest_first(store: SqliteStore, clock: FakeClock) -> None:
    service = FoodService(store, clock=clock)
    older = service.add_food(_food("Old"))
    clock.advance(60)
    newer = service.add_food(_food("New"))

    assert service.get_recent_foods(limit=5) == [newer, older]
    assert service.get_total_count() == 2


def test_import_from_search_result_is_idempotent(store: SqliteStore) -> None:
    service = FoodService(store)
    result = make_result(
        "Nutella", brand="Ferrero", data_source="openfoodfacts", external_id="301"
    )

    first = service.import_from_search_result(result)
    second = service.import_from_search_result(result)

    assert first.id == second.id
    assert service.get_total_count() == 1
    assert first.barcode == "301"
    assert first.calories_per_serving == 100
    assert service.find_by_external_id("openfoodfacts", "301") == first
    assert service.find_by_external_id("usda", "301") is None
