"""Tests for canonical action encoding and hashing."""

import msgpack
import pytest
from eth_utils import keccak

from hyperwire.errors import SigningError
from hyperwire.exchange.actions import CancelOrder, CancelSpec, Noop, OrderSpec, PlaceOrder
from hyperwire.exchange.encoding import (
    action_hash,
    encode_action,
    float_to_usd_int,
    float_to_wire,
)

VAULT = "0x1719884eb866cb12b2287399b15f7db5e7d775ea"


def _order():
    return PlaceOrder((OrderSpec(asset=0, is_buy=True, sz=1.0, limit_px=50000.0),))


class TestFloatToWire:
    """Tests for price/size rendering."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (50000.0, "50000"),
            (1.0, "1"),
            (0.1, "0.1"),
            (123.456, "123.456"),
            (0.00012345, "0.00012345"),
            (-0.0, "0"),
            (-2.5, "-2.5"),
        ],
    )
    def test_renders_shortest_form(self, value, expected):
        assert float_to_wire(value) == expected

    def test_refuses_precision_loss(self):
        with pytest.raises(ValueError):
            float_to_wire(0.000000001)

    def test_usd_int(self):
        assert float_to_usd_int(1.5) == 1_500_000
        assert float_to_usd_int(-2.0) == -2_000_000


class TestEncodeAction:
    """Tests for MessagePack encoding."""

    def test_is_deterministic(self):
        assert encode_action(_order()) == encode_action(_order())

    def test_preserves_field_order(self):
        decoded = msgpack.unpackb(encode_action(_order()), raw=False)
        assert list(decoded) == ["type", "orders", "grouping"]
        assert list(decoded["orders"][0]) == ["a", "b", "p", "s", "r", "t"]

    def test_different_actions_encode_differently(self):
        cancel = CancelOrder((CancelSpec(0, 1),))
        assert encode_action(cancel) != encode_action(_order())


class TestActionHash:
    """Tests for the connection id hash."""

    def test_is_32_bytes(self):
        assert len(action_hash(Noop(), 1)) == 32

    def test_depends_on_nonce(self):
        assert action_hash(_order(), 1) != action_hash(_order(), 2)

    def test_depends_on_vault(self):
        assert action_hash(_order(), 1) != action_hash(_order(), 1, VAULT)

    def test_depends_on_expiry(self):
        assert action_hash(_order(), 1) != action_hash(_order(), 1, expires_after=5)

    def test_rejects_negative_nonce(self):
        with pytest.raises(SigningError):
            action_hash(Noop(), -1)

    def test_rejects_bad_vault(self):
        with pytest.raises(SigningError):
            action_hash(Noop(), 1, "0x1234")


CANCEL_BYTES = bytes.fromhex(
    "82"                      # map of 2
    "a474797065"              # "type"
    "a663616e63656c"          # "cancel"
    "a763616e63656c73"        # "cancels"
    "91" "82"                 # [ {2 entries}
    "a161" "01"               # "a": 1
    "a16f" "ce000141ce"       # "o": 82382 as uint32
)


class TestCanonicalBytes:
    """Exact bytes that get hashed; fixed across processes and versions."""

    def _cancel(self):
        return CancelOrder((CancelSpec(asset=1, oid=82382),))

    def test_cancel_encoding(self):
        assert encode_action(self._cancel()) == CANCEL_BYTES

    def test_hash_layout_without_vault(self):
        expected = keccak(CANCEL_BYTES + (1583838).to_bytes(8, "big") + b"\x00")
        assert action_hash(self._cancel(), 1583838) == expected

    def test_hash_layout_with_vault_and_expiry(self):
        tail = b"\x01" + bytes.fromhex(VAULT[2:]) + b"\x00" + (1_700_000_060_000).to_bytes(8, "big")
        expected = keccak(CANCEL_BYTES + (1583838).to_bytes(8, "big") + tail)
        assert action_hash(self._cancel(), 1583838, VAULT, 1_700_000_060_000) == expected
