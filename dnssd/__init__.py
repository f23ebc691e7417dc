"""
dnssd - mDNS / DNS-SD Device Discovery

Sends multicast DNS queries, decodes the responses and reports the
devices that answered, or streams every mDNS packet seen on the LAN.
"""

from .config import Config, load_config
from .errors import DiscoveryBusyError, DnsSdError, TransportError, ValidationError
from .dns import Message, ResourceRecord, compose_query, parse
from .discovery import Device, DnsSd, MonitorSubscription, SessionState

__version__ = '0.1.0'

__all__ = [
    'Config',
    'load_config',
    'DiscoveryBusyError',
    'DnsSdError',
    'TransportError',
    'ValidationError',
    'Message',
    'ResourceRecord',
    'compose_query',
    'parse',
    'Device',
    'DnsSd',
    'MonitorSubscription',
    'SessionState',
]
