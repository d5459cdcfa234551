"""
test_shop_types.py - Unit tests for core data structures

Tests:
- Address: construction, hex parsing, encoding, ordering
- Product id codec: byte layout, validation
- ShopItem: creation, validation, immutability, encoding
- ShopOperation / PendingShopTransaction: validation, intent ids
"""

import pytest
from decimal import Decimal
from uuid import UUID

from shop import (
    Address, ShopItem, ShopOperation, OperationType,
    PendingShopTransaction, build_shop_transaction,
    register_op, unregister_op, shop_item,
    serialize_product_id, deserialize_product_id,
    SHOP_ADDRESS, ADDRESS_SIZE,
)

from tests.fake_view import make_address, make_item, make_product_id


class TestAddress:
    """Tests for Address creation and encoding."""

    def test_from_bytes(self):
        addr = Address(b"\x01" * 20)
        assert addr.raw == b"\x01" * 20
        assert addr.serialize() == b"\x01" * 20

    def test_from_hex_with_prefix(self):
        addr = Address.from_hex("0x" + "ab" * 20)
        assert addr.raw == bytes.fromhex("ab" * 20)

    def test_from_hex_without_prefix(self):
        assert Address.from_hex("AB" * 20) == Address.from_hex("0x" + "ab" * 20)

    def test_str_is_prefixed_lower_hex(self):
        addr = Address.from_hex("CD" * 20)
        assert str(addr) == "0x" + "cd" * 20

    def test_wrong_length_raises(self):
        with pytest.raises(ValueError, match="20 bytes"):
            Address(b"\x00" * 19)

    def test_wrong_hex_length_raises(self):
        with pytest.raises(ValueError, match="40 digits"):
            Address.from_hex("0xabcd")

    def test_non_hex_raises(self):
        with pytest.raises(ValueError):
            Address.from_hex("zz" * 20)

    def test_non_bytes_raises(self):
        with pytest.raises(ValueError, match="must be bytes"):
            Address("0" * 20)

    def test_bytearray_is_normalized(self):
        addr = Address(bytearray(20))
        assert isinstance(addr.raw, bytes)
        assert addr == SHOP_ADDRESS

    def test_equality_and_hash(self):
        assert make_address(5) == make_address(5)
        assert hash(make_address(5)) == hash(make_address(5))
        assert make_address(5) != make_address(6)

    def test_ordering_is_bytewise(self):
        assert make_address(1) < make_address(2) < make_address(256)

    def test_frozen(self):
        addr = make_address(1)
        with pytest.raises(AttributeError):
            addr.raw = b"\x00" * 20

    def test_deserialize_rejects_text(self):
        with pytest.raises(ValueError, match="must be bytes"):
            Address.deserialize("0x" + "00" * 20)

    def test_shop_address_is_well_known(self):
        assert len(SHOP_ADDRESS.raw) == ADDRESS_SIZE
        assert str(SHOP_ADDRESS) == "0x" + "00" * 20


class TestProductIdCodec:
    """Tests for the 16-byte product id encoding."""

    def test_roundtrip(self):
        pid = UUID("12345678-9abc-def0-1234-56789abcdef0")
        assert deserialize_product_id(serialize_product_id(pid)) == pid

    def test_mixed_endian_layout(self):
        """First three fields are little-endian, the rest big-endian."""
        pid = UUID("00112233-4455-6677-8899-aabbccddeeff")
        assert serialize_product_id(pid) == bytes.fromhex("33221100554477668899aabbccddeeff")

    def test_wrong_length_raises(self):
        with pytest.raises(ValueError, match="16 bytes"):
            deserialize_product_id(b"\x00" * 15)

    def test_non_bytes_raises(self):
        with pytest.raises(ValueError):
            deserialize_product_id(str(make_product_id(1)))


class TestShopItem:
    """Tests for ShopItem creation, validation and encoding."""

    def test_factory_converts_price(self):
        seller = make_address(1)
        item = shop_item(seller, make_product_id(1), "12.50")
        assert item.price == Decimal("12.50")
        assert item.seller_avatar_address == seller
        assert item.item == {}

    def test_payload_is_copied(self):
        item = make_item(make_address(1), 1, item={"id": 7})
        payload = item.item
        payload["id"] = 8
        assert item.item == {"id": 7}

    def test_nested_payload_is_copied(self):
        payload = {"stats": {"atk": 1}, "options": [{"id": 3}]}
        item = make_item(make_address(1), 1, item=payload)

        payload["stats"]["atk"] = 2
        payload["options"].append({"id": 4})
        assert item.item == {"stats": {"atk": 1}, "options": [{"id": 3}]}

        returned = item.item
        returned["stats"]["atk"] = 99
        returned["options"][0]["id"] = 99
        assert item.item == {"stats": {"atk": 1}, "options": [{"id": 3}]}
        assert item.serialize()["item"] == {"stats": {"atk": 1}, "options": [{"id": 3}]}

    def test_nested_payload_is_hashable(self):
        seller = make_address(1)
        item = make_item(seller, 1, item={"stats": {"atk": 1}, "tags": ["a", "b"]})
        same = make_item(seller, 1, item={"tags": ["a", "b"], "stats": {"atk": 1}})
        assert hash(item) == hash(same)
        assert {item, same} == {item}

    def test_nested_mapping_differs_from_pair_list(self):
        seller = make_address(1)
        assert make_item(seller, 1, item={"a": {"x": 1}}) != make_item(seller, 1, item={"a": [["x", 1]]})

    def test_serialized_payload_is_not_aliased(self):
        item = make_item(make_address(1), 1, item={"stats": {"atk": 1}})
        encoded = item.serialize()
        restored = ShopItem.deserialize(encoded)

        encoded["item"]["stats"]["atk"] = 99
        assert restored.item == {"stats": {"atk": 1}}
        assert restored == item

    def test_non_mapping_payload_raises(self):
        with pytest.raises(ValueError, match="mapping"):
            make_item(make_address(1), 1, item=[1, 2])

    def test_value_equality(self):
        seller = make_address(1)
        assert make_item(seller, 1) == make_item(seller, 1)
        assert make_item(seller, 1, price="1") != make_item(seller, 1, price="2")

    def test_frozen(self):
        item = make_item(make_address(1), 1)
        with pytest.raises(AttributeError):
            item.price = Decimal("0")

    def test_negative_price_raises(self):
        with pytest.raises(ValueError, match="negative"):
            make_item(make_address(1), 1, price="-1")

    def test_non_finite_price_raises(self):
        with pytest.raises(ValueError, match="finite"):
            shop_item(make_address(1), make_product_id(1), Decimal("NaN"))

    def test_float_price_raises(self):
        with pytest.raises(ValueError, match="Decimal"):
            ShopItem(make_address(1), make_address(1), make_product_id(1), 1.5)

    def test_product_id_must_be_uuid(self):
        with pytest.raises(ValueError, match="UUID"):
            ShopItem(make_address(1), make_address(1), "not-a-uuid", Decimal("1"))

    def test_negative_expiry_raises(self):
        with pytest.raises(ValueError, match="expired_block_index"):
            make_item(make_address(1), 1, expired_block_index=-5)

    def test_serialize_shape(self):
        seller = make_address(1)
        item = make_item(seller, 1, price="10.50", expired_block_index=100)
        encoded = item.serialize()
        assert encoded == {
            "expiredBlockIndex": 100,
            "item": {"grade": 1, "id": 1},
            "price": "10.5",
            "productId": serialize_product_id(make_product_id(1)),
            "sellerAgentAddress": seller.raw,
            "sellerAvatarAddress": seller.raw,
        }
        assert list(encoded) == sorted(encoded)

    def test_serialize_omits_unset_expiry(self):
        encoded = make_item(make_address(1), 1).serialize()
        assert "expiredBlockIndex" not in encoded

    def test_deserialize_inverts_serialize(self):
        item = make_item(make_address(1), 1, price="3.25", expired_block_index=9)
        assert ShopItem.deserialize(item.serialize()) == item

    def test_deserialize_missing_key_raises(self):
        encoded = make_item(make_address(1), 1).serialize()
        del encoded["productId"]
        with pytest.raises(KeyError):
            ShopItem.deserialize(encoded)


class TestOperations:
    """Tests for ShopOperation and PendingShopTransaction."""

    def test_register_op(self):
        seller = make_address(1)
        item = make_item(seller, 1)
        op = register_op(seller, item)
        assert op.op_type == OperationType.REGISTER
        assert op.product_id == item.product_id
        assert op.shop_item is item

    def test_unregister_op_accepts_item_or_id(self):
        seller = make_address(1)
        item = make_item(seller, 1)
        assert unregister_op(seller, item) == unregister_op(seller, item.product_id)

    def test_register_without_item_raises(self):
        with pytest.raises(ValueError, match="requires a shop_item"):
            ShopOperation(OperationType.REGISTER, make_address(1), make_product_id(1))

    def test_register_mismatched_id_raises(self):
        seller = make_address(1)
        with pytest.raises(ValueError, match="must match"):
            ShopOperation(OperationType.REGISTER, seller, make_product_id(2), make_item(seller, 1))

    def test_unregister_with_item_raises(self):
        seller = make_address(1)
        with pytest.raises(ValueError, match="cannot carry"):
            ShopOperation(OperationType.UNREGISTER, seller, make_product_id(1), make_item(seller, 1))

    def test_intent_id_is_deterministic(self):
        seller = make_address(1)
        ops = [register_op(seller, make_item(seller, 1)), unregister_op(seller, make_product_id(1))]
        assert build_shop_transaction(ops).intent_id == build_shop_transaction(list(ops)).intent_id
        assert len(build_shop_transaction(ops).intent_id) == 16

    def test_intent_id_depends_on_order(self):
        seller = make_address(1)
        ops = [register_op(seller, make_item(seller, 1)), unregister_op(seller, make_product_id(1))]
        assert build_shop_transaction(ops).intent_id != build_shop_transaction(ops[::-1]).intent_id

    def test_intent_id_depends_on_item_value(self):
        seller = make_address(1)
        a = build_shop_transaction([register_op(seller, make_item(seller, 1, price="1"))])
        b = build_shop_transaction([register_op(seller, make_item(seller, 1, price="2"))])
        assert a.intent_id != b.intent_id

    def test_empty_transaction(self):
        pending = PendingShopTransaction(operations=())
        assert pending.is_empty()
        assert pending.intent_id
