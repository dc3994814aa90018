"""
Tests for WireGuard key and address validation.
"""
import pytest

from core.exceptions import InvalidGeneratedKey
from core.validation import is_valid_wireguard_key, require_valid_key, validate_allowed_address

VALID_KEY = "aB3dE5fG7hI9jK1lM3nO5pQ7rS9tU1vW3xY5zA7bC9d="


class TestIsValidWireguardKey:

    def test_accepts_well_formed_key(self):
        assert is_valid_wireguard_key(VALID_KEY)
        assert is_valid_wireguard_key("+/" * 21 + "a=")

    @pytest.mark.parametrize("value", [
        VALID_KEY[:-2] + "=",          # too short
        VALID_KEY[:-1] + "a=",         # too long
        VALID_KEY[:-1] + "A",          # no padding
        "-" + VALID_KEY[1:],           # url-safe alphabet
        VALID_KEY[:42] + "==",         # double padding
        "",
        None,
        44,
        b"aB3dE5fG7hI9jK1lM3nO5pQ7rS9tU1vW3xY5zA7bC9d=",
    ])
    def test_rejects_malformed(self, value):
        assert not is_valid_wireguard_key(value)

    def test_rejects_trailing_newline(self):
        assert not is_valid_wireguard_key(VALID_KEY + "\n")


def test_require_valid_key_raises_with_label():
    with pytest.raises(InvalidGeneratedKey, match="preshared key"):
        require_valid_key("nope", "preshared key")
    assert require_valid_key(VALID_KEY) == VALID_KEY


class TestValidateAllowedAddress:

    def test_single_and_list(self):
        assert validate_allowed_address("172.16.0.5/32") == "172.16.0.5/32"
        assert validate_allowed_address(" 10.0.0.2 , 10.1.0.0/16") == "10.0.0.2,10.1.0.0/16"

    @pytest.mark.parametrize("value", ["", " , ", "300.1.1.1/32", "not-an-ip"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            validate_allowed_address(value)
