"""Tests for the food diary service."""

import pytest

from keyston.adapters.sqlite_store import SqliteStore
from keyston.domain.errors import NotFoundError, ValidationError
from keyston.services.diary import FoodDiaryService
from keyston.services.favorites import FavoriteFoodsService
from keyston.services.foods import FoodService
from tests.conftest import FakeClock


def _entry(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "food_id": "food-1",
        "entry_date": "2024-01-15",
        "meal_type": "breakfast",
        "serving_size": 100,
        "serving_unit": "g",
        "calories": 200,
        "protein_g": 10,
        "carbs_g": 25,
        "fat_g": 1,
    }
    payload.update(overrides)
    return payload


def test_add_and_get_entry(store: SqliteStore, clock: FakeClock) -> None:
    service = FoodDiaryService(store, clock=clock)

    entry = service.add_entry(_entry(fiber_g=3, micronutrients={"vitaminC": 12}))

    loaded = service.get_entry(entry.id)
    assert loaded == entry
    assert loaded.created_at == clock.now
    assert service.get_total_count() == 1


@pytest.mark.parametrize(
    ("override", "field_name"),
    [
        ({"entry_date": "2024-02-30"}, "entry_date"),
        ({"entry_date": "15/01/2024"}, "entry_date"),
        ({"meal_type": "brunch"}, "meal_type"),
        ({"serving_size": 0}, "serving_size"),
        ({"serving_unit": ""}, "serving_unit"),
        ({"calories": -1}, "calories"),
        ({"micronutrients": {"iron": -2}}, "micronutrients"),
        ({"entry_date": "2024-W03-1"}, "entry_date"),
        ({"entry_date": "20240115XX"}, "entry_date"),
        ({"micronutrients": {"iron": float("nan")}}, "micronutrients"),
        ({"fiber_g": float("inf")}, "fiber_g"),
    ],
)
def test_add_entry_rejects_invalid_input(
    store: SqliteStore, override: dict[str, object], field_name: str
) -> None:
    service = FoodDiaryService(store)

    with pytest.raises(ValidationError) as info:
        service.add_entry(_entry(**override))

    assert any(key.startswith(field_name) for key in info.value.fields)
    assert service.get_total_count() == 0


def test_entries_for_date_in_logging_order(
    store: SqliteStore, clock: FakeClock
) -> None:
    service = FoodDiaryService(store, clock=clock)
    first = service.add_entry(_entry(meal_type="lunch"))
    clock.advance(60)
    second = service.add_entry(_entry(meal_type="breakfast"))
    service.add_entry(_entry(entry_date="2024-01-16"))

    entries = service.get_entries_for_date("2024-01-15")
    lunch = service.get_entries_by_meal("2024-01-15", "lunch")

    assert [entry.id for entry in entries] == [first.id, second.id]
    assert [entry.id for entry in lunch] == [first.id]


def test_entries_in_range_are_inclusive(store: SqliteStore) -> None:
    service = FoodDiaryService(store)
    for day in ("2024-01-14", "2024-01-15", "2024-01-16", "2024-01-17"):
        service.add_entry(_entry(entry_date=day))

    entries = service.get_entries_in_range("2024-01-15", "2024-01-16")

    assert [entry.entry_date for entry in entries] == ["2024-01-15", "2024-01-16"]
    with pytest.raises(ValidationError):
        service.get_entries_in_range("2024-01-16", "2024-01-15")


def test_daily_totals_sum_entries(store: SqliteStore) -> None:
    service = FoodDiaryService(store)
    service.add_entry(_entry(calories=200, protein_g=10, sodium_mg=100))
    service.add_entry(_entry(calories=400, protein_g=25, meal_type="dinner"))
    service.add_entry(_entry(calories=999, entry_date="2024-01-16"))

    totals = service.calculate_daily_totals("2024-01-15")

    assert totals.calories == 600
    assert totals.protein_g == 35
    assert totals.sodium_mg == 100
    assert totals.entry_count == 2


def test_daily_totals_for_empty_day_are_zero(store: SqliteStore) -> None:
    totals = FoodDiaryService(store).calculate_daily_totals("2024-03-01")

    assert totals.calories == 0
    assert totals.fat_g == 0
    assert totals.entry_count == 0


def test_update_entry_is_partial_and_validated(store: SqliteStore) -> None:
    service = FoodDiaryService(store)
    entry = service.add_entry(_entry())

    updated = service.update_entry(entry.id, {"serving_size": 150, "calories": 300})

    assert updated.serving_size == 150
    assert updated.calories == 300
    assert updated.protein_g == entry.protein_g
    assert updated.created_at == entry.created_at
    assert service.get_entry(entry.id) == updated
    with pytest.raises(ValidationError):
        service.update_entry(entry.id, {"calories": -5})
    with pytest.raises(ValidationError):
        service.update_entry(entry.id, {"id": "other"})
    with pytest.raises(NotFoundError):
        service.update_entry("missing", {"calories": 1})


def test_delete_entries_for_date(store: SqliteStore) -> None:
    service = FoodDiaryService(store)
    service.add_entry(_entry())
    service.add_entry(_entry(meal_type="snack"))
    kept = service.add_entry(_entry(entry_date="2024-01-16"))

    removed = service.delete_entries_for_date("2024-01-15")

    assert removed == 2
    assert service.get_entries_for_date("2024-01-15") == []
    assert service.get_entry(kept.id) is not None
    service.delete_entry(kept.id)
    assert service.get_total_count() == 0


def test_add_entry_from_food_scales_and_bumps_favorite(store: SqliteStore) -> None:
    favorites = FavoriteFoodsService(store)
    service = FoodDiaryService(store, favorites=favorites)
    food = FoodService(store).add_food(
        {
            "name": "Oats",
            "serving_size_default": 40,
            "calories_per_serving": 150,
            "protein_g": 5,
            "carbs_g": 27,
            "fat_g": 3,
            "fiber_g": 4,
        }
    )
    favorites.add_favorite(food.id)

    entry = service.add_entry_from_food(food, "2024-01-15", "breakfast", 80)

    assert entry.serving_unit == "g"
    assert entry.calories == 300
    assert entry.protein_g == 10
    assert entry.fiber_g == 8
    assert entry.sugar_g is None
    assert favorites.get_top_favorites(1)[0].usage_count == 2
