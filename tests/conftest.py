"""
conftest.py - Shared pytest fixtures for shop tests

Provides common fixtures used across unit and conformance tests:
- Sellers (deterministic addresses)
- Empty and populated shops
"""

import pytest

from shop import ShopState, Address

from tests.fake_view import make_address, make_item


# =============================================================================
# SELLERS
# =============================================================================

@pytest.fixture
def seller_x() -> Address:
    return make_address(1)


@pytest.fixture
def seller_y() -> Address:
    return make_address(2)


@pytest.fixture
def seller_z() -> Address:
    return make_address(3)


# =============================================================================
# SHOPS
# =============================================================================

@pytest.fixture
def shop() -> ShopState:
    """Empty genesis shop."""
    return ShopState()


@pytest.fixture
def populated_shop(seller_x, seller_y) -> ShopState:
    """
    Shop with two sellers and three listings:
        seller_x: product 1, product 2
        seller_y: product 3
    """
    s = ShopState()
    s.register(seller_x, make_item(seller_x, 1, "100"))
    s.register(seller_x, make_item(seller_x, 2, "250.50"))
    s.register(seller_y, make_item(seller_y, 3, "7"))
    return s
