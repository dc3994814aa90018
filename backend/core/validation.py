# backend/core/validation.py
"""
WireGuard key and address format checks
"""

import ipaddress
import re
from typing import Any

from .exceptions import InvalidGeneratedKey

WIREGUARD_KEY_PATTERN = re.compile(r'^[A-Za-z0-9+/]{43}=$')


def is_valid_wireguard_key(key: Any) -> bool:
    """Validate WireGuard key format (Base64, 44 chars ending with =)"""
    if not isinstance(key, str) or len(key) != 44:
        return False
    return WIREGUARD_KEY_PATTERN.fullmatch(key) is not None


def require_valid_key(key: Any, label: str = "key") -> str:
    """Return key unchanged or raise InvalidGeneratedKey"""
    if not is_valid_wireguard_key(key):
        raise InvalidGeneratedKey(f"Generated invalid {label}")
    return key


def validate_allowed_address(value: str) -> str:
    """
    Validate an allowed-address value (IPv4 address or CIDR, comma separated)

    Raises:
        ValueError: If any entry is not a valid IPv4 network
    """
    entries = [part.strip() for part in value.split(",") if part.strip()]
    if not entries:
        raise ValueError("Allowed address must not be empty")
    for entry in entries:
        try:
            ipaddress.IPv4Network(entry, strict=False)
        except ValueError as e:
            raise ValueError(f"Invalid allowed address '{entry}': {e}")
    return ",".join(entries)
