"""
Core types and pure functions for the shop state.

This module provides the foundational data structures and protocols for the shop:
1. Protocols: ShopView for read-only access to the listing book
2. Identifier primitives: Address and the product id codec
3. Immutable data structures: ShopItem, ShopOperation, PendingShopTransaction
4. Exceptions: ShopError and the listing-specific error types
5. Canonicalization: deterministic content hashing of encoded state

All functions in this module are pure. Only ShopState mutates listings.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
import hashlib
from typing import (
    Dict, List, Optional, Any, Protocol,
    Tuple, Union, Mapping, runtime_checkable
)
from uuid import UUID


# ============================================================================
# CONSTANTS
# ============================================================================

# Width of an account address in bytes.
ADDRESS_SIZE = 20

# Width of an encoded product id in bytes.
PRODUCT_ID_SIZE = 16

# Top-level keys of the canonical encoding.
ADDRESS_KEY = "address"
AGENT_PRODUCTS_KEY = "agentProducts"
PRODUCTS_KEY = "products"

# Keys of an encoded ShopItem.
SELLER_AGENT_ADDRESS_KEY = "sellerAgentAddress"
SELLER_AVATAR_ADDRESS_KEY = "sellerAvatarAddress"
PRODUCT_ID_KEY = "productId"
PRICE_KEY = "price"
ITEM_KEY = "item"
EXPIRED_BLOCK_INDEX_KEY = "expiredBlockIndex"

# Number of hex characters kept from the SHA-256 digest for intent ids.
INTENT_ID_LENGTH = 16


# ============================================================================
# TYPE ALIASES
# ============================================================================

# A value of the canonical encoding: dict, list, bytes, str, int, bool or None.
Serialized = Any

# Opaque item payload carried by a listing.
ItemPayload = Dict[str, Any]


# ============================================================================
# ADDRESS
# ============================================================================

@dataclass(frozen=True, slots=True, order=True)
class Address:
    """
    Fixed-width account address.

    Attributes:
        raw: The 20 address bytes. This is also the canonical encoding.

    Ordering is bytewise and only used to make serialization deterministic.
    """
    raw: bytes

    def __post_init__(self):
        if not isinstance(self.raw, (bytes, bytearray)):
            raise ValueError(f"Address must be bytes, got {type(self.raw)}")
        if len(self.raw) != ADDRESS_SIZE:
            raise ValueError(
                f"Address must be {ADDRESS_SIZE} bytes, got {len(self.raw)}"
            )
        object.__setattr__(self, 'raw', bytes(self.raw))

    @classmethod
    def from_hex(cls, hex_string: str) -> Address:
        """
        Parse an address from 40 hex digits, with or without a 0x prefix.

        Raises:
            ValueError: If the string is not valid hex of the right width.
        """
        digits = hex_string[2:] if hex_string[:2].lower() == "0x" else hex_string
        if len(digits) != ADDRESS_SIZE * 2:
            raise ValueError(
                f"Address hex must be {ADDRESS_SIZE * 2} digits, got {len(digits)}"
            )
        return cls(bytes.fromhex(digits))

    def hex(self) -> str:
        return self.raw.hex()

    def serialize(self) -> bytes:
        return self.raw

    @classmethod
    def deserialize(cls, value: Serialized) -> Address:
        if not isinstance(value, (bytes, bytearray)):
            raise ValueError(f"Encoded address must be bytes, got {type(value)}")
        return cls(bytes(value))

    def __str__(self) -> str:
        return f"0x{self.hex()}"

    def __repr__(self) -> str:
        return f"Address({self})"


# Well-known address of the singleton shop state.
SHOP_ADDRESS = Address(bytes(ADDRESS_SIZE))


# ============================================================================
# PRODUCT ID CODEC
# ============================================================================

def serialize_product_id(product_id: UUID) -> bytes:
    """
    Encode a product id as 16 bytes.

    Uses the mixed-endian field layout (UUID.bytes_le) so encodings stay
    byte-compatible with state written by other ledger nodes.
    """
    return product_id.bytes_le


def deserialize_product_id(value: Serialized) -> UUID:
    """
    Decode a product id from its 16-byte encoding.

    Raises:
        ValueError: If the value is not exactly 16 bytes.
    """
    if not isinstance(value, (bytes, bytearray)) or len(value) != PRODUCT_ID_SIZE:
        raise ValueError(f"Encoded product id must be {PRODUCT_ID_SIZE} bytes")
    return UUID(bytes_le=bytes(value))


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class ShopView(Protocol):
    """
    Read-only interface to the listing book.

    Functions accepting a ShopView declare that they never mutate listings.
    ShopState implements this protocol and is the only mutation boundary.
    """

    @property
    def address(self) -> Address:
        """Return the ledger address of the shop."""
        ...

    @property
    def agent_products(self) -> Dict[Address, Tuple['ShopItem', ...]]:
        """Return a copy of the by-seller index."""
        ...

    @property
    def products(self) -> Dict[UUID, 'ShopItem']:
        """Return a copy of the by-product-id index."""
        ...

    def try_get(
        self,
        seller_agent_address: Address,
        product_id: UUID
    ) -> Optional[Tuple[Address, 'ShopItem']]:
        """Look up a listing within one seller's sequence."""
        ...

    def get_product(self, product_id: UUID) -> Optional['ShopItem']:
        """Look up a listing by product id alone."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of applying a PendingShopTransaction.

    APPLIED: Every operation succeeded and the book now reflects all of them.
    REJECTED: An operation failed; the book is unchanged.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


class OperationType(Enum):
    REGISTER = "register"
    UNREGISTER = "unregister"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ShopError(Exception):
    """Base exception for all shop state errors."""
    pass


class DuplicateListingError(ShopError):
    """
    Raised when registering a listing that already exists.

    Attributes:
        index: Which index detected the duplicate ("agentProducts" or "products")
        seller: Seller agent address passed to register()
        product_id: Product id of the rejected listing
    """

    def __init__(self, index: str, seller: Address, product_id: UUID):
        self.index = index
        self.seller = seller
        self.product_id = product_id
        super().__init__(f"{index}, {seller}, {product_id}")


class ListingNotFoundError(ShopError):
    """
    Raised when a seller/product id combination is not listed.

    Also raised when the by-product-id index lacks an entry the seller's
    sequence implies, which means the indexes are out of sync.

    Attributes:
        index: Which index was missing the entry ("agentProducts" or "products")
        seller: Seller agent address that was searched
        product_id: Product id that was searched
    """

    def __init__(self, index: str, seller: Address, product_id: UUID):
        self.index = index
        self.seller = seller
        self.product_id = product_id
        super().__init__(f"{index}, {seller}, {product_id}")


class ShopIntegrityError(ShopError):
    """Raised when an encoded shop state is malformed or its indexes disagree."""
    pass


# ============================================================================
# CANONICALIZATION
# ============================================================================

def _normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical string representation.

    Decimal("1.0") and Decimal("1.00") both become "1". Fixed-point
    notation is used so no exponent appears in the output.
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Dict ordering, Decimal representation variance and bytes/str key
    ambiguity do not affect the output.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return f"D:{_normalize_decimal(value)}"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, (bytes, bytearray)):
        return f"B:{bytes(value).hex()}"
    if isinstance(value, UUID):
        return f"U:{value}"
    if isinstance(value, Address):
        return f"A:{value.hex()}"
    if isinstance(value, dict):
        # Binary keys sort before text keys, each group in natural order
        items = sorted(value.items(), key=lambda kv: _key_order(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    return f"R:{repr(value)}"


def _key_order(key: Any) -> Tuple[int, Any]:
    if isinstance(key, (bytes, bytearray)):
        return (0, bytes(key))
    return (1, str(key))


def canonical_hash(value: Serialized) -> str:
    """Return the SHA-256 hex digest of a value's canonical form."""
    return hashlib.sha256(_canonicalize(value).encode()).hexdigest()


class _FrozenMapping(tuple):
    """A nested payload mapping frozen as (key, value) pairs sorted by key."""

    __slots__ = ()

    def __eq__(self, other):
        return isinstance(other, _FrozenMapping) and tuple.__eq__(self, other)

    def __ne__(self, other):
        return not self.__eq__(other)

    __hash__ = tuple.__hash__


def _freeze_value(value: Any) -> Any:
    """
    Recursively convert a payload value to an immutable, hashable form.

    Mappings become _FrozenMapping, lists and tuples become tuples and
    bytearrays become bytes. Every other value is returned as is.
    """
    if isinstance(value, Mapping):
        return _FrozenMapping(
            (key, _freeze_value(item))
            for key, item in sorted(value.items(), key=lambda kv: _key_order(kv[0]))
        )
    if isinstance(value, (list, tuple)):
        return tuple(_freeze_value(item) for item in value)
    if isinstance(value, bytearray):
        return bytes(value)
    return value


def _thaw_value(value: Any) -> Any:
    if isinstance(value, _FrozenMapping):
        return {key: _thaw_value(item) for key, item in value}
    if isinstance(value, tuple):
        return [_thaw_value(item) for item in value]
    return value


def _freeze_payload(payload: Optional[Mapping[str, Any]]) -> Tuple[Tuple[str, Any], ...]:
    """
    Convert a payload mapping to a tuple of (key, value) pairs sorted by key.

    Nested values are frozen too, so the result shares nothing mutable with
    the caller's mapping.
    """
    if not payload:
        return ()
    if not isinstance(payload, Mapping):
        raise ValueError(f"Item payload must be a mapping, got {type(payload)}")
    return tuple(_freeze_value(payload))


def _thaw_payload(frozen: Tuple[Tuple[str, Any], ...]) -> ItemPayload:
    """Convert a frozen payload back to a new dict of new dicts and lists."""
    return {key: _thaw_value(value) for key, value in frozen}


# ============================================================================
# SHOP ITEM
# ============================================================================

@dataclass(frozen=True, slots=True)
class ShopItem:
    """
    A listing: one item offered for sale in the shop.

    The book only relies on product_id and on full-value equality; the
    remaining fields travel with the listing untouched.

    Attributes:
        seller_agent_address: Account of the seller.
        seller_avatar_address: Avatar of the seller that owned the item.
        product_id: Globally unique id of this listing.
        price: Asking price (finite, non-negative).
        expired_block_index: Block index after which the listing lapses, if any.
        _frozen_item: Internal frozen item payload (tuple of key-value pairs,
            nested mappings and sequences frozen recursively).
    """
    seller_agent_address: Address
    seller_avatar_address: Address
    product_id: UUID
    price: Decimal
    expired_block_index: Optional[int] = None
    _frozen_item: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.seller_agent_address, Address):
            raise ValueError("ShopItem seller_agent_address must be an Address")
        if not isinstance(self.seller_avatar_address, Address):
            raise ValueError("ShopItem seller_avatar_address must be an Address")
        if not isinstance(self.product_id, UUID):
            raise ValueError(f"ShopItem product_id must be UUID, got {type(self.product_id)}")
        if not isinstance(self.price, Decimal):
            raise ValueError(f"ShopItem price must be Decimal, got {type(self.price)}")
        if not self.price.is_finite():
            raise ValueError(f"ShopItem price must be finite, got {self.price}")
        if self.price < 0:
            raise ValueError(f"ShopItem price cannot be negative, got {self.price}")
        if self.expired_block_index is not None:
            if isinstance(self.expired_block_index, bool) or not isinstance(self.expired_block_index, int):
                raise ValueError("ShopItem expired_block_index must be an int")
            if self.expired_block_index < 0:
                raise ValueError("ShopItem expired_block_index cannot be negative")

    @property
    def item(self) -> ItemPayload:
        """Return the item payload as a new dict; nested values are new copies too."""
        return _thaw_payload(self._frozen_item)

    def serialize(self) -> Dict[str, Serialized]:
        serialized = {
            SELLER_AGENT_ADDRESS_KEY: self.seller_agent_address.serialize(),
            SELLER_AVATAR_ADDRESS_KEY: self.seller_avatar_address.serialize(),
            PRODUCT_ID_KEY: serialize_product_id(self.product_id),
            PRICE_KEY: _normalize_decimal(self.price),
            ITEM_KEY: self.item,
        }
        if self.expired_block_index is not None:
            serialized[EXPIRED_BLOCK_INDEX_KEY] = self.expired_block_index
        return dict(sorted(serialized.items()))

    @classmethod
    def deserialize(cls, serialized: Mapping[str, Serialized]) -> ShopItem:
        """
        Rebuild a ShopItem from its canonical encoding.

        Raises:
            KeyError: If a required key is missing.
            ValueError: If a field has the wrong shape.
        """
        return cls(
            seller_agent_address=Address.deserialize(serialized[SELLER_AGENT_ADDRESS_KEY]),
            seller_avatar_address=Address.deserialize(serialized[SELLER_AVATAR_ADDRESS_KEY]),
            product_id=deserialize_product_id(serialized[PRODUCT_ID_KEY]),
            price=Decimal(serialized[PRICE_KEY]),
            expired_block_index=serialized.get(EXPIRED_BLOCK_INDEX_KEY),
            _frozen_item=_freeze_payload(serialized.get(ITEM_KEY)),
        )

    def __repr__(self) -> str:
        return f"ShopItem({self.product_id} @ {self.price} by {self.seller_agent_address})"


def shop_item(
    seller_agent_address: Address,
    product_id: UUID,
    price: Union[Decimal, str, int],
    seller_avatar_address: Optional[Address] = None,
    item: Optional[Mapping[str, Any]] = None,
    expired_block_index: Optional[int] = None,
) -> ShopItem:
    """
    Create a ShopItem.

    Args:
        seller_agent_address: Account of the seller.
        product_id: Unique id of the listing.
        price: Asking price; str and int are converted to Decimal.
        seller_avatar_address: Avatar address (default: the agent address).
        item: Opaque item payload.
        expired_block_index: Optional expiry block.

    Returns:
        A frozen ShopItem.
    """
    if not isinstance(price, Decimal):
        price = Decimal(str(price))
    return ShopItem(
        seller_agent_address=seller_agent_address,
        seller_avatar_address=seller_avatar_address or seller_agent_address,
        product_id=product_id,
        price=price,
        expired_block_index=expired_block_index,
        _frozen_item=_freeze_payload(item),
    )


# ============================================================================
# OPERATIONS AND PENDING TRANSACTIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class ShopOperation:
    """
    A single register or unregister request against the book.

    Attributes:
        op_type: REGISTER or UNREGISTER.
        seller: Seller agent address.
        product_id: Product id affected.
        shop_item: The listing to register (REGISTER only).
    """
    op_type: OperationType
    seller: Address
    product_id: UUID
    shop_item: Optional[ShopItem] = None

    def __post_init__(self):
        if self.op_type == OperationType.REGISTER:
            if self.shop_item is None:
                raise ValueError("REGISTER operation requires a shop_item")
            if self.shop_item.product_id != self.product_id:
                raise ValueError("REGISTER operation product_id must match shop_item")
        elif self.shop_item is not None:
            raise ValueError("UNREGISTER operation cannot carry a shop_item")

    def __repr__(self) -> str:
        return f"ShopOperation({self.op_type.value} {self.product_id} seller={self.seller})"


def register_op(seller: Address, item: ShopItem) -> ShopOperation:
    return ShopOperation(OperationType.REGISTER, seller, item.product_id, item)


def unregister_op(seller: Address, target: Union[ShopItem, UUID]) -> ShopOperation:
    product_id = target.product_id if isinstance(target, ShopItem) else target
    return ShopOperation(OperationType.UNREGISTER, seller, product_id)


def _compute_intent_id(operations: Tuple[ShopOperation, ...]) -> str:
    """
    Compute a deterministic content hash for a transaction's operations.

    Operation order is significant and kept as given: registering then
    unregistering the same listing is a different intent from the reverse.
    """
    content_parts = []
    for op in operations:
        item = _canonicalize(op.shop_item.serialize()) if op.shop_item else "null"
        content_parts.append(f"{op.op_type.value}:{op.seller.hex()}|{op.product_id}|{item}")
    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:INTENT_ID_LENGTH]


@dataclass(frozen=True, slots=True)
class PendingShopTransaction:
    """
    An ordered batch of shop operations to apply all-or-nothing.

    Attributes:
        operations: Operations in application order.
        intent_id: Content-addressable hash of the operations (auto-computed).
    """
    operations: Tuple[ShopOperation, ...]
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            object.__setattr__(self, 'intent_id', _compute_intent_id(self.operations))

    def is_empty(self) -> bool:
        return not self.operations

    def __repr__(self) -> str:
        return f"PendingShopTransaction({len(self.operations)} ops, intent={self.intent_id})"


def build_shop_transaction(operations: List[ShopOperation]) -> PendingShopTransaction:
    """
    Build a PendingShopTransaction from a list of operations.

    Example:
        pending = build_shop_transaction([
            register_op(seller, item),
            unregister_op(seller, stale_product_id),
        ])
        report = shop.execute(pending)
    """
    return PendingShopTransaction(operations=tuple(operations))


@dataclass(frozen=True, slots=True)
class ExecutionReport:
    """
    Typed outcome of ShopState.execute().

    Attributes:
        result: APPLIED or REJECTED.
        intent_id: Intent id of the executed transaction.
        error: The ShopError that caused rejection (None when applied).
        failed_index: Position of the failing operation (None when applied).
    """
    result: ExecuteResult
    intent_id: str
    error: Optional[ShopError] = None
    failed_index: Optional[int] = None

    @property
    def applied(self) -> bool:
        return self.result == ExecuteResult.APPLIED
