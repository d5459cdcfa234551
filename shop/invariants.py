"""
invariants.py - Consistency checks for the listing book.

Pure functions over a read-only ShopView. The book keeps two indexes in
lockstep; these checks report every place where they disagree:

    1. A product id is in `products` iff the identical listing is in some
       seller's sequence in `agent_products`.
    2. No seller's sequence holds two value-equal listings.
    3. A seller key is present iff its sequence is non-empty.
    4. Product ids are unique across the whole book.

Used by ShopState.verify_integrity() and by ShopState.deserialize(validate=True).
"""

from __future__ import annotations
from typing import Any, Dict, List
from uuid import UUID

from .core import Address, ShopView


def check_invariants(view: ShopView) -> Dict[str, Any]:
    """
    Check all listing book invariants.

    Args:
        view: Read-only shop view

    Returns:
        Dict with keys:
        - 'valid': bool - True if every invariant holds
        - 'discrepancies': List[Dict] - one record per violation, each with a
          'kind' key plus the seller and/or product_id involved

    Example:
        result = check_invariants(shop)
        assert result['valid'], result['discrepancies']
    """
    agent_products = view.agent_products
    products = view.products
    discrepancies: List[Dict[str, Any]] = []

    # Sellers holding each product id
    seen: Dict[UUID, List[Address]] = {}

    for seller in sorted(agent_products):
        items = agent_products[seller]
        if not items:
            discrepancies.append({'kind': 'empty_seller', 'seller': seller})
            continue

        for position, item in enumerate(items):
            if item in items[:position]:
                discrepancies.append({
                    'kind': 'duplicate_listing',
                    'seller': seller,
                    'product_id': item.product_id,
                })
                continue

            seen.setdefault(item.product_id, []).append(seller)

            indexed = products.get(item.product_id)
            if indexed is None:
                discrepancies.append({
                    'kind': 'missing_from_products',
                    'seller': seller,
                    'product_id': item.product_id,
                })
            elif indexed != item:
                discrepancies.append({
                    'kind': 'listing_mismatch',
                    'seller': seller,
                    'product_id': item.product_id,
                })

    for product_id in sorted(seen):
        sellers = seen[product_id]
        if len(sellers) > 1:
            discrepancies.append({
                'kind': 'duplicate_product_id',
                'product_id': product_id,
                'sellers': sellers,
            })

    for product_id in sorted(products):
        if product_id not in seen:
            discrepancies.append({'kind': 'orphan_product', 'product_id': product_id})

    return {
        'valid': len(discrepancies) == 0,
        'discrepancies': discrepancies,
    }
