from __future__ import annotations

import pytest
from pydantic import ValidationError

from catalog.dishes.history import revert_dish, snapshot, update_dish
from catalog.dishes.models import MUTABLE_FIELDS, DishUpdate
from catalog.dishes.service import get_dish_history, soft_delete_dish
from catalog.errors import NotFoundError, ValidationFailure
from catalog.reviews.service import create_review
from catalog.store.database import get_store

ADMIN_ID = "usr_admin"
OTHER_ADMIN = "usr_other_admin"


def _live(dish_id):
    return snapshot(get_store().dishes.find_one({"id": dish_id}))


def test_update_appends_pre_update_snapshot(make_dish):
    dish = make_dish()
    original = _live(dish.id)

    updated = update_dish(dish.id, DishUpdate(cooking_time=30), ADMIN_ID)

    assert updated.cooking_time == 30
    history = get_dish_history(dish.id)
    assert len(history) == 1
    assert history[0].version == 1
    assert history[0].data == original
    assert history[0].modified_by == ADMIN_ID


def test_history_revert_round_trip(make_dish):
    dish = make_dish()
    v1_state = _live(dish.id)

    update_dish(dish.id, DishUpdate(cooking_time=30), ADMIN_ID)
    update_dish(dish.id, DishUpdate(category="Khác", region="Miền Nam"), ADMIN_ID)
    pre_revert = _live(dish.id)
    assert len(get_dish_history(dish.id)) == 2

    reverted = revert_dish(dish.id, 1, OTHER_ADMIN)

    assert _live(dish.id) == v1_state
    assert reverted.cooking_time == 45
    history = get_dish_history(dish.id)
    assert [h.version for h in history] == [1, 2, 3]
    assert history[2].data == pre_revert
    assert history[2].modified_by == OTHER_ADMIN


def test_revert_is_itself_undoable(make_dish):
    dish = make_dish()
    update_dish(dish.id, DishUpdate(cooking_time=30), ADMIN_ID)
    revert_dish(dish.id, 1, ADMIN_ID)
    assert _live(dish.id)["cooking_time"] == 45

    revert_dish(dish.id, 2, ADMIN_ID)
    assert _live(dish.id)["cooking_time"] == 30
    assert len(get_dish_history(dish.id)) == 3


def test_history_entries_are_never_rewritten(make_dish):
    dish = make_dish()
    update_dish(dish.id, DishUpdate(cooking_time=30), ADMIN_ID)
    first = get_dish_history(dish.id)[0]

    update_dish(dish.id, DishUpdate(cooking_time=20), ADMIN_ID)
    revert_dish(dish.id, 1, ADMIN_ID)

    assert get_dish_history(dish.id)[0] == first


def test_revert_to_unknown_version_is_not_found_and_changes_nothing(make_dish):
    dish = make_dish()
    update_dish(dish.id, DishUpdate(cooking_time=30), ADMIN_ID)

    with pytest.raises(NotFoundError, match="Version not found"):
        revert_dish(dish.id, 7, ADMIN_ID)
    assert len(get_dish_history(dish.id)) == 1
    assert _live(dish.id)["cooking_time"] == 30


def test_update_or_revert_missing_or_deleted_dish_is_not_found(make_dish):
    with pytest.raises(NotFoundError, match="Dish not found"):
        update_dish("missing", DishUpdate(cooking_time=30), ADMIN_ID)
    with pytest.raises(NotFoundError, match="Dish not found"):
        revert_dish("missing", 1, ADMIN_ID)

    dish = make_dish()
    update_dish(dish.id, DishUpdate(cooking_time=30), ADMIN_ID)
    soft_delete_dish(dish.id)
    with pytest.raises(NotFoundError, match="Dish not found"):
        revert_dish(dish.id, 1, ADMIN_ID)


def test_revert_never_touches_rating_aggregates(make_dish):
    dish = make_dish()
    update_dish(dish.id, DishUpdate(cooking_time=30), ADMIN_ID)
    create_review("usr_user", dish.id, 5)

    reverted = revert_dish(dish.id, 1, ADMIN_ID)
    assert (reverted.average_rating, reverted.review_count) == (5.0, 1)
    assert all("average_rating" not in h.data for h in get_dish_history(dish.id))


def test_price_range_is_checked_on_merged_state(make_dish):
    dish = make_dish(min_price=10000, max_price=20000)
    with pytest.raises(ValidationFailure):
        update_dish(dish.id, DishUpdate(min_price=50000), ADMIN_ID)
    assert get_dish_history(dish.id) == []
    assert _live(dish.id)["min_price"] == 10000


def test_snapshot_covers_content_fields_only(make_dish):
    dish = make_dish()
    assert set(_live(dish.id)) == set(MUTABLE_FIELDS)


def test_empty_update_is_rejected_without_a_history_entry(make_dish):
    dish = make_dish()
    with pytest.raises(ValidationFailure):
        update_dish(dish.id, DishUpdate(), ADMIN_ID)
    assert get_dish_history(dish.id) == []


def test_required_fields_cannot_be_cleared():
    with pytest.raises(ValidationError):
        DishUpdate(name=None)
    with pytest.raises(ValidationError):
        DishUpdate.model_validate({"cooking_time": 20, "category": None})
