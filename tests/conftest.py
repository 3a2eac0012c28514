"""Pytest configuration and fixtures"""
import os
from decimal import Decimal
from unittest.mock import Mock

import pytest

# Set test environment variables
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")

from sessioncart.cart import Cart, EventDispatcher, MemoryCartRepository, MemorySessionStore  # noqa: E402
from sessioncart.config import CartSettings  # noqa: E402


class Product:
    """Catalog object implementing the Purchasable capability."""

    def __init__(self, id, name, price, description=None, discountable=True):
        self.id = id
        self.name = name
        self.price = price
        self.description = description
        self.discountable = discountable

    def get_purchasable_identifier(self, options=None):
        return self.id

    def get_purchasable_name(self, options=None):
        return self.name

    def get_purchasable_description(self, options=None):
        return self.description

    def get_purchasable_price(self, options=None):
        return self.price

    def get_purchasable_discountable(self, options=None):
        return self.discountable


class RecordingSink:
    """Event sink that keeps every emitted event."""

    def __init__(self):
        self.events = []

    def emit(self, event, *payload):
        self.events.append((event, payload))

    def names(self):
        return [event.value for event, _ in self.events]


@pytest.fixture
def settings():
    """Cart settings with a 6% item tax"""
    return CartSettings(tax_rate=Decimal("0.06"))


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def repository():
    return MemoryCartRepository()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def cart(session_store, sink, repository, settings):
    """Cart over in-memory session and durable stores"""
    return Cart(session_store, events=sink, repository=repository, settings=settings)


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def product():
    return Product("sku-42", "Espresso Machine", "250.00", description="15 bar")


@pytest.fixture
def mock_redis():
    """Mock Upstash Redis client"""
    client = Mock()
    client.get.return_value = None
    client.exists.return_value = 0
    client.keys.return_value = []
    return client


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client"""
    client = Mock()

    # Mock table operations
    table_mock = Mock()
    table_mock.select.return_value = table_mock
    table_mock.insert.return_value = table_mock
    table_mock.delete.return_value = table_mock
    table_mock.eq.return_value = table_mock
    table_mock.limit.return_value = table_mock
    table_mock.execute.return_value = Mock(data=[])

    client.table.return_value = table_mock

    return client
