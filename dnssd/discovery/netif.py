"""
Network Interface Enumeration

Lists the IPv4 addresses we query from and join the multicast group on.

Excluded:
- Loopback (127.0.0.0/8): nothing to discover there
- Link-local (169.254.0.0/16): self-assigned, usually a dead interface
- IPv6: the transport is IPv4-only

Re-read at the start of every discovery/monitor call so interfaces
that came up or went away in between are picked up.
"""

import ipaddress
import logging
from typing import List

import netifaces

logger = logging.getLogger(__name__)


def is_usable_address(address: str) -> bool:
    """True for an IPv4 address that is neither loopback nor link-local."""
    try:
        ip = ipaddress.IPv4Address(address)
    except ValueError:
        return False
    return not (ip.is_loopback or ip.is_link_local)


def get_interface_addresses() -> List[str]:
    """Get usable IPv4 addresses of all local interfaces."""
    addresses = []

    for interface in netifaces.interfaces():
        try:
            addrs = netifaces.ifaddresses(interface)
        except ValueError as e:
            logger.debug(f"Skipping interface {interface}: {e}")
            continue

        for addr_info in addrs.get(netifaces.AF_INET, []):
            address = addr_info.get('addr')
            if address and is_usable_address(address) and address not in addresses:
                addresses.append(address)

    logger.debug(f"Usable interface addresses: {addresses}")
    return addresses
