from __future__ import annotations

import numpy as np
import pydantic
import pytest

from catalog.dishes.service import restore_dish, soft_delete_dish
from catalog.errors import ConflictError, NotFoundError, ValidationFailure
from catalog.restaurants.geo import RestaurantFilters, angular_radius, within_cap
from catalog.restaurants.models import GeoPoint, RestaurantCreate, RestaurantUpdate
from catalog.restaurants.service import (
    assign_dishes_to_restaurant,
    create_restaurant,
    find_nearby_restaurants,
    get_restaurant,
    get_restaurant_admin,
    list_restaurants_admin,
    list_restaurants_by_dish,
    restore_restaurant,
    soft_delete_restaurant,
    update_restaurant,
)
from catalog.store.database import get_store

SAIGON = GeoPoint(longitude=106.7008, latitude=10.7769)
# Roughly 10 km due east of SAIGON
TEN_KM_EAST = {"longitude": 106.7923, "latitude": 10.7769}


def _ids(response):
    return [r.id for r in response.restaurants]


# ── Geospatial ───────────────────────────────────────────────────────────


def test_radius_search_finds_restaurant_at_center(make_restaurant):
    here = make_restaurant()
    result = find_nearby_restaurants(SAIGON, 500)
    assert _ids(result) == [here.id]


def test_tiny_radius_excludes_distant_restaurant(make_restaurant):
    here = make_restaurant()
    make_restaurant(name="Far away", location=TEN_KM_EAST)

    assert _ids(find_nearby_restaurants(SAIGON, 0.5)) == [here.id]
    assert _ids(find_nearby_restaurants(SAIGON, 5000)) == [here.id]
    assert len(find_nearby_restaurants(SAIGON, 20000).restaurants) == 2


def test_center_without_radius_uses_ten_kilometres(make_restaurant):
    make_restaurant()
    make_restaurant(name="Hà Nội branch", location={"longitude": 105.8542, "latitude": 21.0285})
    assert len(find_nearby_restaurants(SAIGON).restaurants) == 1


def test_radius_combines_with_category_filter(make_restaurant, make_dish):
    pho = make_dish()
    che = make_dish(category="Chè")
    serves_pho = make_restaurant(dishes=[pho.id])
    make_restaurant(name="Dessert bar", dishes=[che.id])
    make_restaurant(name="Far pho", location=TEN_KM_EAST, dishes=[pho.id])

    result = find_nearby_restaurants(SAIGON, 1000, RestaurantFilters(category="Phở"))
    assert _ids(result) == [serves_pho.id]


def test_category_filter_ignores_deleted_dishes(make_restaurant, make_dish):
    pho = make_dish()
    restaurant = make_restaurant(dishes=[pho.id])
    soft_delete_dish(pho.id)
    assert find_nearby_restaurants(filters=RestaurantFilters(category="Phở")).restaurants == []
    restore_dish(pho.id)
    assert _ids(find_nearby_restaurants(filters=RestaurantFilters(category="Phở"))) == [restaurant.id]


def test_radius_results_follow_sort_key_not_distance(make_restaurant):
    far = make_restaurant(name="A far one", location=TEN_KM_EAST)
    near = make_restaurant(name="Z near one")
    result = find_nearby_restaurants(SAIGON, 20000, RestaurantFilters(sort_by="name"))
    assert _ids(result) == [far.id, near.id]


def test_rating_range_and_name_filters(make_restaurant):
    good = make_restaurant(name="Bún Chả Hương Liên")
    make_restaurant(name="Bún Bò Huế")
    restaurants = get_store().restaurants
    restaurants.update_one({"id": good.id}, {"average_rating": 4.6})

    rated = find_nearby_restaurants(filters=RestaurantFilters(min_rating=4.5, max_rating=5))
    assert _ids(rated) == [good.id]
    named = find_nearby_restaurants(filters=RestaurantFilters(search="bún"))
    assert named.pagination.total == 2
    assert find_nearby_restaurants(filters=RestaurantFilters(search="hương")).pagination.total == 1


def test_pagination_counts_filtered_set(make_restaurant):
    for i in range(5):
        make_restaurant(name=f"Near {i}")
    for i in range(3):
        make_restaurant(name=f"Far {i}", location=TEN_KM_EAST)

    result = find_nearby_restaurants(SAIGON, 1000, page=2, limit=2)
    assert result.pagination.total == 5
    assert result.pagination.total_pages == 3
    assert len(result.restaurants) == 2


def test_search_excludes_deleted_restaurants(make_restaurant):
    gone = make_restaurant()
    soft_delete_restaurant(gone.id)
    assert find_nearby_restaurants(SAIGON, 500).restaurants == []


def test_invalid_search_input_is_rejected():
    with pytest.raises(ValidationFailure):
        find_nearby_restaurants(GeoPoint(longitude=200, latitude=0), 500)
    with pytest.raises(ValidationFailure):
        find_nearby_restaurants(None, 500)
    with pytest.raises(ValidationFailure):
        find_nearby_restaurants(filters=RestaurantFilters(min_rating=4, max_rating=3))


def test_within_cap_uses_angular_radius():
    lons = np.array([106.7008, 106.7923])
    lats = np.array([10.7769, 10.7769])
    assert within_cap(SAIGON, lons, lats, 500).tolist() == [True, False]
    assert angular_radius(6378100) == 1.0


# ── Location validation ──────────────────────────────────────────────────


@pytest.mark.parametrize("location", [
    {"longitude": 180.5, "latitude": 0},
    {"longitude": -181, "latitude": 0},
    {"longitude": 0, "latitude": 91},
    {"longitude": 0, "latitude": -90.01},
])
def test_out_of_range_location_is_rejected(restaurant_payload, location):
    with pytest.raises(ValidationFailure):
        create_restaurant(RestaurantCreate(**restaurant_payload(location=location)))


def test_boundary_location_is_accepted(restaurant_payload):
    created = create_restaurant(RestaurantCreate(**restaurant_payload(
        location={"longitude": -180, "latitude": 90},
    )))
    assert created.location.latitude == 90


# ── Dish assignment ──────────────────────────────────────────────────────


def test_assignment_with_inactive_dish_fails_entirely(make_restaurant, make_dish):
    active = make_dish()
    inactive = make_dish()
    soft_delete_dish(inactive.id)
    restaurant = make_restaurant()

    with pytest.raises(ValidationFailure) as excinfo:
        assign_dishes_to_restaurant(restaurant.id, [active.id, inactive.id])

    assert excinfo.value.details["invalid_ids"] == [inactive.id]
    assert inactive.id in excinfo.value.message
    assert get_restaurant_admin(restaurant.id).dish_ids == []


def test_assignment_names_unknown_ids(make_restaurant, make_dish):
    restaurant = make_restaurant()
    with pytest.raises(ValidationFailure) as excinfo:
        assign_dishes_to_restaurant(restaurant.id, [make_dish().id, "ghost"])
    assert excinfo.value.details["invalid_ids"] == ["ghost"]


def test_assignment_replaces_and_deduplicates(make_restaurant, make_dish):
    a, b = make_dish(), make_dish()
    restaurant = make_restaurant(dishes=[a.id])
    out = assign_dishes_to_restaurant(restaurant.id, [b.id, a.id, b.id])
    assert out.dish_ids == [b.id, a.id]


def test_assignment_to_deleted_restaurant_is_not_found(make_restaurant, make_dish):
    restaurant = make_restaurant()
    soft_delete_restaurant(restaurant.id)
    with pytest.raises(NotFoundError):
        assign_dishes_to_restaurant(restaurant.id, [make_dish().id])


def test_update_checks_dishes_like_assignment(make_restaurant, make_dish):
    restaurant = make_restaurant()
    gone = make_dish()
    soft_delete_dish(gone.id)
    with pytest.raises(ValidationFailure):
        update_restaurant(restaurant.id, RestaurantUpdate(dishes=[gone.id]))
    with pytest.raises(ValidationFailure):
        update_restaurant(restaurant.id, RestaurantUpdate(location=GeoPoint(longitude=0, latitude=95)))
    renamed = update_restaurant(restaurant.id, RestaurantUpdate(name="Phở Thìn Bờ Hồ"))
    assert renamed.name == "Phở Thìn Bờ Hồ"


def test_dangling_dish_references_are_skipped_on_read(make_restaurant, make_dish):
    kept, dropped = make_dish(), make_dish()
    restaurant = make_restaurant(dishes=[kept.id, dropped.id])
    soft_delete_dish(dropped.id)

    assert [d.id for d in get_restaurant(restaurant.id).dishes] == [kept.id]
    admin = get_restaurant_admin(restaurant.id)
    assert admin.dish_ids == [kept.id, dropped.id]

    restore_dish(dropped.id)
    assert [d.id for d in get_restaurant(restaurant.id).dishes] == [kept.id, dropped.id]


def test_restaurants_by_dish_applies_active_filter(make_restaurant, make_dish):
    pho = make_dish()
    open_ = make_restaurant(dishes=[pho.id])
    closed = make_restaurant(name="Closed", dishes=[pho.id])
    make_restaurant(name="Elsewhere")
    soft_delete_restaurant(closed.id)

    assert [r.id for r in list_restaurants_by_dish(pho.id)] == [open_.id]
    listed = find_nearby_restaurants(filters=RestaurantFilters(dish_id=pho.id))
    assert _ids(listed) == [open_.id]


# ── Lifecycle ────────────────────────────────────────────────────────────


def test_restaurant_soft_delete_and_restore_are_guarded(make_restaurant):
    restaurant = make_restaurant()
    with pytest.raises(ConflictError):
        restore_restaurant(restaurant.id)
    soft_delete_restaurant(restaurant.id)
    with pytest.raises(ConflictError):
        soft_delete_restaurant(restaurant.id)
    with pytest.raises(NotFoundError):
        get_restaurant(restaurant.id)
    with pytest.raises(NotFoundError):
        update_restaurant(restaurant.id, RestaurantUpdate(name="New name"))

    assert list_restaurants_admin(status="deleted").restaurants[0].status == "deleted"
    assert restore_restaurant(restaurant.id).status == "active"


def test_update_can_clear_website_but_not_required_fields(make_restaurant):
    restaurant = make_restaurant()
    cleared = update_restaurant(restaurant.id, RestaurantUpdate(website=None))
    assert cleared.website is None
    assert cleared.name == restaurant.name

    with pytest.raises(pydantic.ValidationError):
        RestaurantUpdate(phone=None)


def test_empty_restaurant_update_is_rejected(make_restaurant):
    restaurant = make_restaurant()
    with pytest.raises(ValidationFailure):
        update_restaurant(restaurant.id, RestaurantUpdate())
    assert get_restaurant_admin(restaurant.id).updated_at == restaurant.updated_at
