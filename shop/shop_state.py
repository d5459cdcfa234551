"""
shop_state.py - The on-ledger listing book

ShopState is the single mutation boundary for shop listings. It keeps two
indexes in lockstep:

    agent_products: seller address -> ordered list of listings
    products:       product id     -> listing

Key responsibilities:
    - register/unregister listings without ever leaving the indexes out of sync
    - seller-scoped lookup (try_get) and global lookup (get_product)
    - canonical serialization and deserialization of the whole book
    - all-or-nothing application of batched operations (execute)
"""

from __future__ import annotations
from typing import Dict, List, Optional, Tuple, Union, Mapping, Any
import warnings
from uuid import UUID

from .core import (
    # Types
    Address, ShopItem, ShopOperation, PendingShopTransaction,
    ExecutionReport, ExecuteResult, OperationType, Serialized,
    # Constants
    SHOP_ADDRESS, AGENT_PRODUCTS_KEY, PRODUCTS_KEY,
    # Exceptions
    ShopError, DuplicateListingError, ListingNotFoundError, ShopIntegrityError,
    # Helper functions
    serialize_product_id, deserialize_product_id, canonical_hash,
)
from .invariants import check_invariants
from .state import State


class ShopState(State):
    """
    Dual-indexed book of active listings.

    Implements the ShopView protocol. Both indexes are private; callers get
    copies from the read-only properties and mutate only through register(),
    unregister() and execute().

    Thread Safety:
        Not thread-safe. The outer ledger applies one operation at a time and
        rolls back by discarding the instance (see clone() and deserialize()).

    Example:
        shop = ShopState()
        shop.register(seller, item)
        found = shop.try_get(seller, item.product_id)
        shop.unregister(seller, item.product_id)
        restored = ShopState.deserialize(shop.serialize())
    """

    def __init__(self, address: Optional[Address] = None, verbose: bool = False):
        """
        Create an empty shop (genesis state).

        Args:
            address: Ledger address of the shop (default: SHOP_ADDRESS)
            verbose: Print a line for every registration and rejection (default: False)
        """
        super().__init__(address or SHOP_ADDRESS)
        self._agent_products: Dict[Address, List[ShopItem]] = {}
        self._products: Dict[UUID, ShopItem] = {}
        self.verbose = verbose

    # ========================================================================
    # ShopView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def agent_products(self) -> Dict[Address, Tuple[ShopItem, ...]]:
        """Copy of the by-seller index. Sequences are returned as tuples."""
        return {seller: tuple(items) for seller, items in self._agent_products.items()}

    @property
    def products(self) -> Dict[UUID, ShopItem]:
        """Copy of the by-product-id index."""
        return dict(self._products)

    def try_get(
        self,
        seller_agent_address: Address,
        product_id: UUID
    ) -> Optional[Tuple[Address, ShopItem]]:
        """
        Find a listing in one seller's sequence.

        Only the seller's own sequence is scanned; the global index is not
        consulted. Never raises.

        Returns:
            (seller_agent_address, listing) if found, otherwise None
        """
        for shop_item in self._agent_products.get(seller_agent_address, ()):
            if shop_item.product_id == product_id:
                return seller_agent_address, shop_item
        return None

    def get_product(self, product_id: UUID) -> Optional[ShopItem]:
        """Look up a listing by product id alone (O(1))."""
        return self._products.get(product_id)

    def list_sellers(self) -> List[Address]:
        """List sellers with at least one listing, in address order."""
        return sorted(self._agent_products)

    def __len__(self) -> int:
        return len(self._products)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._products

    # ========================================================================
    # LISTING MUTATIONS
    # ========================================================================

    def register(self, seller_agent_address: Address, shop_item: ShopItem) -> ShopItem:
        """
        List an item for sale under a seller.

        Both duplicate checks run before anything is changed, so a failed
        call leaves the book exactly as it was.

        Args:
            seller_agent_address: Seller listing the item
            shop_item: The listing

        Returns:
            The same listing, for call chaining

        Raises:
            DuplicateListingError: If the seller already lists an equal item,
                or the product id is already listed by anyone
        """
        product_id = shop_item.product_id
        shop_items = self._agent_products.get(seller_agent_address, [])
        if shop_item in shop_items:
            raise DuplicateListingError(AGENT_PRODUCTS_KEY, seller_agent_address, product_id)
        if product_id in self._products:
            raise DuplicateListingError(PRODUCTS_KEY, seller_agent_address, product_id)

        self._agent_products.setdefault(seller_agent_address, []).append(shop_item)
        self._products[product_id] = shop_item

        if self.verbose:
            print(f"📝 Registered: {product_id} by {seller_agent_address} @ {shop_item.price}")
        return shop_item

    def unregister(
        self,
        seller_agent_address: Address,
        target: Union[ShopItem, UUID]
    ) -> None:
        """
        Remove a seller's listing.

        Args:
            seller_agent_address: Seller that listed the item
            target: The listing itself or its product id

        Raises:
            ListingNotFoundError: If the seller has no listings, none of them
                has the product id, or the global index lacks the product id
        """
        product_id = target.product_id if isinstance(target, ShopItem) else target

        if seller_agent_address not in self._agent_products:
            raise ListingNotFoundError(AGENT_PRODUCTS_KEY, seller_agent_address, product_id)

        found = self.try_get(seller_agent_address, product_id)
        if found is None:
            raise ListingNotFoundError(AGENT_PRODUCTS_KEY, seller_agent_address, product_id)

        # The seller's sequence implies a global entry; its absence means the
        # indexes are out of sync
        if product_id not in self._products:
            raise ListingNotFoundError(PRODUCTS_KEY, seller_agent_address, product_id)

        self._remove(seller_agent_address, found[1])

        if self.verbose:
            print(f"🗑️  Unregistered: {product_id} by {seller_agent_address}")

    def try_unregister(
        self,
        seller_agent_address: Address,
        product_id: UUID
    ) -> Optional[ShopItem]:
        """
        Remove a listing if present and return it.

        Deprecated: use unregister(). Kept for callers written against the
        legacy combined lookup-and-remove API. Unlike the legacy behavior,
        an emptied seller sequence is pruned here as well.

        Returns:
            The removed listing, or None if the seller does not list it
        """
        warnings.warn(
            "ShopState.try_unregister() is deprecated, use unregister()",
            DeprecationWarning,
            stacklevel=2,
        )
        found = self.try_get(seller_agent_address, product_id)
        if found is None:
            return None
        self._remove(*found)
        return found[1]

    def _remove(self, seller_agent_address: Address, shop_item: ShopItem) -> None:
        """Remove a listing known to be in the seller's sequence from both indexes."""
        shop_items = self._agent_products[seller_agent_address]
        shop_items.remove(shop_item)
        if not shop_items:
            del self._agent_products[seller_agent_address]
        self._products.pop(shop_item.product_id, None)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def execute(self, pending: PendingShopTransaction) -> ExecutionReport:
        """
        Apply a batch of operations atomically.

        Operations run in order against a working copy. The book adopts the
        copy only if every operation succeeds; otherwise it is untouched and
        the failure is returned rather than raised.

        Args:
            pending: PendingShopTransaction to apply

        Returns:
            ExecutionReport with result APPLIED, or REJECTED plus the error
            and the index of the failing operation
        """
        if pending.is_empty():
            return ExecutionReport(ExecuteResult.APPLIED, pending.intent_id)

        working = self.clone()
        working.verbose = False
        for position, op in enumerate(pending.operations):
            try:
                working._apply(op)
            except ShopError as e:
                if self.verbose:
                    print(f"✗ REJECTED: intent_id={pending.intent_id} op[{position}]: {e}")
                return ExecutionReport(
                    ExecuteResult.REJECTED,
                    pending.intent_id,
                    error=e,
                    failed_index=position,
                )

        self._agent_products = working._agent_products
        self._products = working._products

        if self.verbose:
            print(f"✓ APPLIED: intent_id={pending.intent_id} ({len(pending.operations)} ops)")
        return ExecutionReport(ExecuteResult.APPLIED, pending.intent_id)

    def _apply(self, op: ShopOperation) -> None:
        if op.op_type == OperationType.REGISTER:
            self.register(op.seller, op.shop_item)
        else:
            self.unregister(op.seller, op.product_id)

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    def serialize(self) -> Dict[str, Serialized]:
        """
        Encode the book as a canonical value.

        Returns:
            Mapping with the base "address" field plus:
            - "agentProducts": seller address bytes -> list of encoded listings
            - "products": product id bytes -> encoded listing
            Binary keys are sorted bytewise; each seller's list keeps its order.
        """
        agent_products = {
            seller.serialize(): [shop_item.serialize() for shop_item in self._agent_products[seller]]
            for seller in sorted(self._agent_products)
        }
        products = dict(sorted(
            ((serialize_product_id(product_id), shop_item.serialize())
             for product_id, shop_item in self._products.items()),
            key=lambda kv: kv[0],
        ))
        serialized = {
            **super().serialize(),
            AGENT_PRODUCTS_KEY: agent_products,
            PRODUCTS_KEY: products,
        }
        return dict(sorted(serialized.items()))

    @classmethod
    def deserialize(
        cls,
        serialized: Mapping[str, Serialized],
        validate: bool = False,
        verbose: bool = False
    ) -> ShopState:
        """
        Rebuild a book from its canonical encoding.

        The two indexes are decoded independently. By default the encoding is
        trusted to be self-consistent, since only serialize() produces it.

        Args:
            serialized: Value previously returned by serialize()
            validate: Cross-check the decoded indexes with check_invariants()
            verbose: Passed to the new instance

        Returns:
            The reconstructed ShopState

        Raises:
            ShopIntegrityError: If the encoding is malformed, or if validate
                is set and the indexes disagree
        """
        try:
            shop = cls(cls.deserialize_address(serialized), verbose=verbose)
            shop._agent_products = {
                Address.deserialize(seller): [ShopItem.deserialize(d) for d in encoded_items]
                for seller, encoded_items in serialized[AGENT_PRODUCTS_KEY].items()
            }
            shop._products = {
                deserialize_product_id(product_id): ShopItem.deserialize(d)
                for product_id, d in serialized[PRODUCTS_KEY].items()
            }
        except (KeyError, TypeError, ValueError, ArithmeticError, AttributeError) as e:
            raise ShopIntegrityError(f"Malformed shop state encoding: {e!r}") from e

        if validate:
            result = check_invariants(shop)
            if not result['valid']:
                raise ShopIntegrityError(
                    f"Inconsistent shop state encoding: {result['discrepancies']}"
                )
        return shop

    def state_hash(self) -> str:
        """
        Content hash of the canonical encoding.

        Two books with equal state hash identically regardless of how they
        were built, so independent executions can be compared bit-for-bit.
        """
        return canonical_hash(self.serialize())

    # ========================================================================
    # INTEGRITY, COPYING, COMPARISON
    # ========================================================================

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify that both indexes agree.

        Returns:
            Dict with 'valid' (bool) and 'discrepancies' (list of dicts),
            see invariants.check_invariants()
        """
        return check_invariants(self)

    def clone(self) -> ShopState:
        """
        Create an independent copy of this book.

        ShopItem freezes its payload recursively and hands out fresh copies,
        so the copy can share listings and only the containers are copied.
        """
        cloned = self.__class__.__new__(self.__class__)
        cloned._address = self._address
        cloned.verbose = self.verbose
        cloned._agent_products = {
            seller: list(items) for seller, items in self._agent_products.items()
        }
        cloned._products = dict(self._products)
        return cloned

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ShopState):
            return NotImplemented
        return (
            self._address == other._address
            and self._agent_products == other._agent_products
            and self._products == other._products
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"ShopState({self._address}, sellers={len(self._agent_products)}, "
            f"products={len(self._products)})"
        )
