"""Render wpa_supplicant configuration text from saved networks."""

from __future__ import annotations

import hashlib
import string
from typing import Sequence

from .networks import Network, Security

TARGET_PRIORITY = 10
DEFAULT_CTRL_INTERFACE = "DIR=/var/run/wpa_supplicant GROUP=netdev"
DEFAULT_COUNTRY = "SA"

_PLAIN_CHARACTERS = frozenset(string.printable) - frozenset('"\\\t\n\r\x0b\x0c')


def _is_plain(value: str) -> bool:
    return bool(value) and all(character in _PLAIN_CHARACTERS for character in value)


def quote_ssid(ssid: str) -> str:
    """Return the ``ssid=`` value, hex encoded when quoting would be unsafe."""

    if _is_plain(ssid):
        return f'"{ssid}"'
    return ssid.encode("utf-8").hex()


def quote_psk(ssid: str, passphrase: str) -> str:
    """Return the ``psk=`` value.

    Passphrases that cannot be quoted safely are replaced by the raw 256-bit
    key, which wpa_supplicant accepts as 64 unquoted hex digits.
    """

    if _is_plain(passphrase):
        return f'"{passphrase}"'
    return derive_psk(ssid, passphrase)


def derive_psk(ssid: str, passphrase: str) -> str:
    key = hashlib.pbkdf2_hmac(
        "sha1", passphrase.encode("utf-8"), ssid.encode("utf-8"), 4096, 32
    )
    return key.hex()


def assign_priorities(
    networks: Sequence[Network],
    target_ssid: str | None,
    *,
    fixed_priority: int | None = None,
) -> list[int]:
    """Return one priority per network, the target always strictly highest."""

    count = len(networks)
    if fixed_priority is not None:
        return [fixed_priority] * count
    target_value = max(TARGET_PRIORITY, count + 1)
    return [
        target_value if network.ssid == target_ssid else count - index
        for index, network in enumerate(networks)
    ]


def render_network_block(network: Network, priority: int) -> list[str]:
    lines = ["network={", f"    ssid={quote_ssid(network.ssid)}"]
    if network.security is Security.OPEN:
        lines.append("    key_mgmt=NONE")
    else:
        lines.append(f"    psk={quote_psk(network.ssid, network.password)}")
        lines.append("    key_mgmt=WPA-PSK")
    lines.append(f"    priority={priority}")
    lines.append("    scan_ssid=1")
    lines.append("}")
    return lines


def generate_config(
    networks: Sequence[Network],
    target_ssid: str | None,
    *,
    country: str = DEFAULT_COUNTRY,
    ctrl_interface: str = DEFAULT_CTRL_INTERFACE,
    fixed_priority: int | None = None,
) -> str:
    """Build the full configuration file for ``networks`` in store order."""

    lines = [
        f"ctrl_interface={ctrl_interface}",
        "update_config=1",
        f"country={country}",
    ]
    priorities = assign_priorities(networks, target_ssid, fixed_priority=fixed_priority)
    for network, priority in zip(networks, priorities):
        lines.append("")
        lines.extend(render_network_block(network, priority))
    return "\n".join(lines) + "\n"


__all__ = [
    "DEFAULT_COUNTRY",
    "DEFAULT_CTRL_INTERFACE",
    "TARGET_PRIORITY",
    "assign_priorities",
    "derive_psk",
    "generate_config",
    "quote_psk",
    "quote_ssid",
    "render_network_block",
]
