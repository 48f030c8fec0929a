"""
Tests for label and name hashing, name validation and search-term parsing.
"""

import string

import pytest
from eth_utils import keccak
from hypothesis import given, settings
from hypothesis import strategies as st

from tnsclient.config import EMPTY_NODE
from tnsclient.errors import InputError
from tnsclient.labelhash import (
    decode_labelhash,
    encode_labelhash,
    is_decrypted,
    is_encoded_labelhash,
    label_token_id,
    labelhash,
    labelhash_hex,
    normalize_label,
)
from tnsclient.namehash import is_label_valid, namehash, namehash_hex, parse_search_term, validate_name

ETH_NODE = "0x93cdeb708b7545dc668eb9280176169d1c33cfd8ed6f04690a0bcc88a93fc4ae"
FOO_ETH_NODE = "0xde9b09fd7c5f901e23a3f19fecc54828e9c848539801e86591bd9801b019f84f"
ETH_LABELHASH = "0x4f5b812789fc606be1b3b16908db13fc7a9adf7ca72641f84d75b47069d3d7f0"

label_strategy = st.text(alphabet=string.ascii_lowercase + string.digits, min_size=1, max_size=20)


class TestNamehash:
    def test_known_vectors(self) -> None:
        assert namehash_hex("eth") == ETH_NODE
        assert namehash_hex("foo.eth") == FOO_ETH_NODE

    def test_root_is_zero_node(self) -> None:
        assert namehash("[root]") == EMPTY_NODE

    def test_case_and_width_folding(self) -> None:
        assert namehash("Foo.ETH") == namehash("foo.eth")
        assert namehash("ｆｏｏ.eth") == namehash("foo.eth")

    def test_encoded_label_matches_plaintext(self) -> None:
        encoded = encode_labelhash(labelhash_hex("foo"))
        assert namehash(f"{encoded}.eth") == namehash("foo.eth")

    @pytest.mark.parametrize("name", ["", ".eth", "foo..eth", "foo.eth."])
    def test_empty_labels_rejected(self, name: str) -> None:
        with pytest.raises(InputError):
            namehash(name)

    def test_non_string_rejected(self) -> None:
        with pytest.raises(InputError):
            namehash(None)

    @given(child=label_strategy, parent=label_strategy)
    @settings(max_examples=100)
    def test_child_node_folds_onto_parent(self, child: str, parent: str) -> None:
        assert namehash(f"{child}.{parent}") == keccak(namehash(parent) + labelhash(child))

    @given(a=label_strategy, b=label_strategy)
    @settings(max_examples=100)
    def test_label_order_matters(self, a: str, b: str) -> None:
        if a != b:
            assert namehash(f"{a}.{b}") != namehash(f"{b}.{a}")


class TestLabelhash:
    def test_known_vector(self) -> None:
        assert labelhash_hex("eth") == ETH_LABELHASH

    def test_encoded_label_is_decoded_not_hashed(self) -> None:
        encoded = "[" + ETH_LABELHASH[2:] + "]"
        assert is_encoded_labelhash(encoded)
        assert labelhash(encoded) == bytes.fromhex(ETH_LABELHASH[2:])

    def test_encode_decode(self) -> None:
        assert decode_labelhash(encode_labelhash(ETH_LABELHASH)) == bytes.fromhex(ETH_LABELHASH[2:])

    @pytest.mark.parametrize("bad", ["4f5b", "0x1234"])
    def test_encode_rejects_bad_hash(self, bad: str) -> None:
        with pytest.raises(InputError):
            encode_labelhash(bad)

    @pytest.mark.parametrize("bad", ["eth", "[1234]", "[" + "zz" * 32 + "]"])
    def test_decode_rejects_bad_label(self, bad: str) -> None:
        with pytest.raises(InputError):
            decode_labelhash(bad)

    def test_token_id_is_labelhash_integer(self) -> None:
        assert label_token_id("eth") == int(ETH_LABELHASH, 16)

    def test_is_decrypted(self) -> None:
        assert is_decrypted("foo.eth")
        assert not is_decrypted(encode_labelhash(ETH_LABELHASH) + ".eth")

    @pytest.mark.parametrize("label", ["", "a.b", "foo_bar", "a b"])
    def test_normalize_rejects(self, label: str) -> None:
        with pytest.raises(InputError):
            normalize_label(label)

    def test_ideographic_full_stop_is_not_a_label(self) -> None:
        with pytest.raises(InputError):
            normalize_label("foo。bar")


class TestValidation:
    def test_validate_name_normalizes(self) -> None:
        assert validate_name("Alice.TOMO") == "alice.tomo"

    def test_validate_keeps_encoded_labels(self) -> None:
        encoded = encode_labelhash(ETH_LABELHASH)
        assert validate_name(f"{encoded}.tomo") == f"{encoded}.tomo"

    def test_is_label_valid(self) -> None:
        assert is_label_valid("alice")
        assert not is_label_valid("alice.tomo")
        assert not is_label_valid("")
        assert not is_label_valid("ali ce")


class TestParseSearchTerm:
    @pytest.mark.parametrize(
        "term, valid_tld, expected",
        [
            ("ab.tomo", True, "short"),
            ("alice.tomo", True, "supported"),
            ("ab.xyz", True, "supported"),
            ("alice.xyz", False, "unsupported"),
            ("0x" + "a1" * 20, False, "address"),
            ("tomo", True, "tld"),
            ("alice", False, "search"),
            ("alice..tomo", True, "invalid"),
            ("ali ce", False, "invalid"),
        ],
    )
    def test_classification(self, term: str, valid_tld: bool, expected: str) -> None:
        assert parse_search_term(term, valid_tld) == expected

    def test_short_counts_code_points(self) -> None:
        # three code points, nine UTF-8 bytes
        assert parse_search_term("日本語.tomo", True) == "supported"
