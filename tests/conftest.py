"""Shared fixtures for the catalog store tests."""

import pytest

from catalog_store import CatalogStore
from config import Settings
from notifications import NotificationCenter
from storage import LocalStore, StorageArea
from tests.factories import NOW, data_url


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def make_image():
    """Factory for data-URL encoded test images."""
    return data_url


@pytest.fixture
def area():
    return StorageArea()


@pytest.fixture
def sink():
    return NotificationCenter()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def catalog(area, sink, settings):
    store = CatalogStore(LocalStore(area), sink, settings=settings, clock=lambda: NOW)
    store.load()
    yield store
    store.close()


@pytest.fixture
def brass_lamp(make_image):
    return {
        "title": "Brass Lamp",
        "description": "Hand-beaten brass table lamp, early 1900s.",
        "price": 500,
        "category": "Lighting & Mirrors",
        "images": [make_image()],
        "phone": "+91 98765 43210",
        "address": "4 Mall Road, Shimla",
        "subject": "Brass",
    }
