"""
Multicast Transport

Design Decision: Socket Setup
=============================

Options Considered:
1. loop.create_datagram_endpoint(local_addr=..., reuse_port=True)
   - Cannot join a multicast group before the endpoint exists
   - reuse_address is no longer accepted by asyncio
2. Build the socket by hand, then hand it to asyncio (sock=...)
   - Full control over SO_REUSEADDR / SO_REUSEPORT and memberships
   - Still get DatagramProtocol callbacks on the event loop

Decision: Build the socket by hand
- SO_REUSEADDR (and SO_REUSEPORT where available) so other mDNS
  responders and other instances can share port 5353
- One IP_ADD_MEMBERSHIP per interface address; a failing interface
  is logged and skipped
- IP_MULTICAST_IF is switched before each send so the query goes
  out of the interface we are currently probing
"""

import asyncio
import logging
import socket
from typing import Callable, List, Optional, Tuple

from ..dns.constants import MDNS_GROUP, MDNS_PORT
from ..errors import TransportError

logger = logging.getLogger(__name__)

# Callback type for inbound datagrams: (data, (host, port))
DatagramHandler = Callable[[bytes, Tuple[str, int]], None]


class MulticastProtocol(asyncio.DatagramProtocol):
    """
    UDP protocol handler for the multicast socket.

    Hands every datagram to the transport's handler. A failing handler
    is logged; it never breaks the receive path.
    """

    def __init__(self, handler: DatagramHandler):
        self.handler = handler
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport: asyncio.DatagramTransport):
        self.transport = transport
        logger.debug(f"Multicast socket ready on {transport.get_extra_info('sockname')}")

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        try:
            self.handler(data, addr)
        except Exception as e:
            logger.error(f"Error handling datagram from {addr}: {e}")

    def error_received(self, exc):
        logger.warning(f"Multicast socket error: {exc}")

    def connection_lost(self, exc):
        if exc:
            logger.error(f"Multicast socket lost: {exc}")
        else:
            logger.debug("Multicast socket closed")


class MulticastTransport:
    """
    One UDP socket bound to the mDNS port and joined to the group.

    The session engine decides when to open and close it; this class
    only owns the socket and its memberships.
    """

    def __init__(self, group: str = MDNS_GROUP, port: int = MDNS_PORT):
        """
        Args:
            group: Multicast group address
            port: UDP port to bind and send to
        """
        self.group = group
        self.port = port

        self._transport: Optional[asyncio.DatagramTransport] = None
        self._socket: Optional[socket.socket] = None
        self._memberships: List[str] = []
        self._handler: Optional[DatagramHandler] = None

    @property
    def is_open(self) -> bool:
        return self._transport is not None

    @property
    def memberships(self) -> List[str]:
        """Interface addresses the group was joined on."""
        return list(self._memberships)

    @property
    def sockname(self) -> Optional[Tuple[str, int]]:
        if self._socket is None:
            return None
        return self._socket.getsockname()

    def on_datagram(self, handler: DatagramHandler):
        """Register the callback for inbound datagrams."""
        self._handler = handler

    async def open(self, addresses: List[str]):
        """
        Bind the socket and join the group on each interface address.

        Does nothing if already open.

        Raises:
            TransportError: If the socket cannot be created or bound
        """
        if self.is_open:
            return

        loop = asyncio.get_running_loop()
        sock = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

            # SO_REUSEPORT is needed on macOS/BSD to share the port
            if hasattr(socket, 'SO_REUSEPORT'):
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
                except OSError as e:
                    logger.debug(f"SO_REUSEPORT not supported: {e}")

            sock.bind(('', self.port))
            sock.setblocking(False)
            self._socket = sock

            for address in addresses:
                self._add_membership(address)

            self._transport, _ = await loop.create_datagram_endpoint(
                lambda: MulticastProtocol(self._dispatch),
                sock=sock,
            )
        except OSError as e:
            self._drop_memberships()
            if sock is not None:
                sock.close()
            self._socket = None
            raise TransportError(f"Failed to open multicast socket on port {self.port}: {e}") from e

        logger.info(
            f"Listening on {self.group}:{self.port} "
            f"({len(self._memberships)}/{len(addresses)} interfaces joined)"
        )

    async def send(self, data: bytes, interface_address: str):
        """
        Send `data` to the group out of the given interface.

        Raises:
            TransportError: If the socket is closed or the send fails
        """
        if not self._transport or not self._socket:
            raise TransportError("Multicast socket is not open")

        try:
            self._socket.setsockopt(
                socket.IPPROTO_IP, socket.IP_MULTICAST_IF,
                socket.inet_aton(interface_address),
            )
            self._transport.sendto(data, (self.group, self.port))
        except OSError as e:
            raise TransportError(f"Send via {interface_address} failed: {e}") from e

        # Let the loop flush the datagram before the caller moves on
        await asyncio.sleep(0)

    def close(self):
        """Leave the group on every interface and release the socket. Idempotent."""
        if self._transport is None and self._socket is None:
            return

        self._drop_memberships()

        if self._transport is not None:
            self._transport.close()
            self._transport = None
        elif self._socket is not None:
            self._socket.close()
        self._socket = None

        logger.info("Multicast socket released")

    def _dispatch(self, data: bytes, addr: Tuple[str, int]):
        if self._handler:
            self._handler(data, addr)

    def _membership_request(self, address: str) -> bytes:
        return socket.inet_aton(self.group) + socket.inet_aton(address)

    def _add_membership(self, address: str):
        try:
            self._socket.setsockopt(
                socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP,
                self._membership_request(address),
            )
            self._memberships.append(address)
            logger.debug(f"Joined {self.group} on {address}")
        except OSError as e:
            logger.warning(f"Could not join {self.group} on {address}: {e}")

    def _drop_memberships(self):
        for address in self._memberships:
            try:
                self._socket.setsockopt(
                    socket.IPPROTO_IP, socket.IP_DROP_MEMBERSHIP,
                    self._membership_request(address),
                )
            except OSError as e:
                logger.debug(f"Could not leave {self.group} on {address}: {e}")
        self._memberships.clear()
