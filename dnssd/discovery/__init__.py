"""
Discovery Module - mDNS Device Discovery on LAN

Provides:
- Interface enumeration
- The shared multicast socket
- The discovery / monitoring session engine
"""

from .netif import get_interface_addresses
from .transport import MulticastTransport, MulticastProtocol
from .device import DefaultClassifier, Device, DeviceClassifier, Service, build_device
from .options import DiscoveryOptions
from .session import DnsSd, MonitorSubscription, SessionState

__all__ = [
    'get_interface_addresses',
    'MulticastTransport',
    'MulticastProtocol',
    'DefaultClassifier',
    'Device',
    'DeviceClassifier',
    'Service',
    'build_device',
    'DiscoveryOptions',
    'DnsSd',
    'MonitorSubscription',
    'SessionState',
]
