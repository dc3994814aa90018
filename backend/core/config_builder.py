# backend/core/config_builder.py
"""
Client config rendering
The layout is read by WireGuard client apps, keep the field order as is
"""

import re
from typing import Optional

PERSISTENT_KEEPALIVE = 25

_UNSAFE_FILENAME_CHARS = re.compile(r'[^a-zA-Z0-9\-_]')


def render_client_config(
    private_key: str,
    address: str,
    dns: str,
    server_public_key: str,
    endpoint: str,
    allowed_ips: str,
    preshared_key: Optional[str] = None,
) -> str:
    """Build the wg-quick config text for one peer (no trailing newline)"""
    config_lines = [
        "[Interface]",
        f"PrivateKey = {private_key}",
        f"Address = {address}",
        f"DNS = {dns}",
        "",
        "[Peer]",
        f"PublicKey = {server_public_key}",
        f"Endpoint = {endpoint}",
        f"AllowedIPs = {allowed_ips}",
    ]

    if preshared_key:
        config_lines.append(f"PresharedKey = {preshared_key}")

    config_lines.append(f"PersistentKeepalive = {PERSISTENT_KEEPALIVE}")

    return "\n".join(config_lines)


def config_filename(name: str) -> str:
    """Download filename for a peer name; 'peer' when the name is blank"""
    if name and name.strip():
        return f"{_UNSAFE_FILENAME_CHARS.sub('_', name)}.conf"
    return "peer.conf"
