"""
state.py - Base class for ledger-addressed state objects.

Every state object lives at one address in the ledger's state store and
contributes that address to its canonical encoding under the "address" key.
Subclasses merge their own fields into the same top-level mapping.
"""

from __future__ import annotations
from typing import Dict, Mapping

from .core import ADDRESS_KEY, Address, Serialized


class State:
    """A state object identified by a single ledger address."""

    def __init__(self, address: Address):
        if not isinstance(address, Address):
            raise ValueError(f"State address must be an Address, got {type(address)}")
        self._address = address

    @property
    def address(self) -> Address:
        return self._address

    def serialize(self) -> Dict[str, Serialized]:
        return {ADDRESS_KEY: self._address.serialize()}

    @staticmethod
    def deserialize_address(serialized: Mapping[str, Serialized]) -> Address:
        """
        Read the address field of an encoded state object.

        Raises:
            KeyError: If the encoding has no address.
            ValueError: If the address is malformed.
        """
        return Address.deserialize(serialized[ADDRESS_KEY])
