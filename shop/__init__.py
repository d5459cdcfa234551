"""
shop - On-ledger Shop State

A deterministic, serializable listing book for a ledger-backed marketplace.

Usage:
    from uuid import uuid4
    from shop import (
        ShopState, Address, ExecuteResult,
        shop_item, build_shop_transaction, unregister_op,
    )

    seller = Address.from_hex("0x" + "ab" * 20)
    item = shop_item(seller, uuid4(), "100")

    shop = ShopState()
    shop.register(seller, item)
    assert shop.try_get(seller, item.product_id) == (seller, item)

    # Persist and restore
    restored = ShopState.deserialize(shop.serialize())
    assert restored == shop

    # Batched, all-or-nothing application with a typed result
    report = shop.execute(build_shop_transaction([unregister_op(seller, item)]))
    assert report.result == ExecuteResult.APPLIED
"""

# Core types
from .core import (
    ShopView,
    Address,
    ShopItem,
    ShopOperation,
    PendingShopTransaction,
    ExecutionReport,
    ExecuteResult,
    OperationType,
    ShopError,
    DuplicateListingError,
    ListingNotFoundError,
    ShopIntegrityError,
    shop_item,
    register_op,
    unregister_op,
    build_shop_transaction,
    serialize_product_id,
    deserialize_product_id,
    canonical_hash,
    SHOP_ADDRESS,
    ADDRESS_SIZE,
    PRODUCT_ID_SIZE,
    ADDRESS_KEY,
    AGENT_PRODUCTS_KEY,
    PRODUCTS_KEY,
)

# State objects
from .state import State
from .shop_state import ShopState

# Invariants
from .invariants import check_invariants

__all__ = [
    # Core
    'ShopView', 'Address', 'ShopItem', 'ShopOperation', 'PendingShopTransaction',
    'ExecutionReport', 'ExecuteResult', 'OperationType',
    'ShopError', 'DuplicateListingError', 'ListingNotFoundError', 'ShopIntegrityError',
    'shop_item', 'register_op', 'unregister_op', 'build_shop_transaction',
    'serialize_product_id', 'deserialize_product_id', 'canonical_hash',
    'SHOP_ADDRESS', 'ADDRESS_SIZE', 'PRODUCT_ID_SIZE',
    'ADDRESS_KEY', 'AGENT_PRODUCTS_KEY', 'PRODUCTS_KEY',
    # State
    'State', 'ShopState',
    # Invariants
    'check_invariants',
]

__version__ = '1.0.0'
