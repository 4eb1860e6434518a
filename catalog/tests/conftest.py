from __future__ import annotations

import mongomock
import pytest

from catalog.analytics.store import clear_events
from catalog.auth.users import seed_users
from catalog.dishes.models import DishCreate
from catalog.dishes.service import create_dish
from catalog.restaurants.models import RestaurantCreate
from catalog.restaurants.service import create_restaurant
from catalog.store.database import use_database

ADMIN_ID = "usr_admin"
USER_ID = "usr_user"


@pytest.fixture(autouse=True)
def clean_catalog():
    client = mongomock.MongoClient(tz_aware=True)
    client.drop_database("dish_catalog_test")
    use_database(client["dish_catalog_test"])
    seed_users()
    clear_events()
    yield


def _dish_payload(**overrides) -> dict:
    payload = {
        "name": {"ja": "フォー", "vi": "Phở bò"},
        "description": {"ja": "牛肉のフォー", "vi": "Phở bò Hà Nội"},
        "images": ["/uploads/dishes/pho.jpg"],
        "ingredients": [{"name": "Bánh phở", "quantity": "200g"}],
        "category": "Phở",
        "region": "Miền Bắc",
        "cooking_time": 45,
        "min_price": 40000,
        "max_price": 60000,
    }
    payload.update(overrides)
    return payload


def _restaurant_payload(**overrides) -> dict:
    payload = {
        "name": "Phở Thìn",
        "address": "13 Lò Đúc, Hà Nội",
        "location": {"longitude": 106.7008, "latitude": 10.7769},
        "phone": "+84 24 3821 2709",
        "website": "https://phothin.example.com",
        "images": [],
        "dishes": [],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_dish():
    def _make(**overrides):
        return create_dish(DishCreate(**_dish_payload(**overrides)), ADMIN_ID)
    return _make


@pytest.fixture
def make_restaurant():
    def _make(**overrides):
        return create_restaurant(RestaurantCreate(**_restaurant_payload(**overrides)))
    return _make


@pytest.fixture
def dish_payload():
    return _dish_payload


@pytest.fixture
def restaurant_payload():
    return _restaurant_payload
