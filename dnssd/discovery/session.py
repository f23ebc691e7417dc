"""
DNS-SD Session Engine

Design Decision: One Socket, Two Modes
======================================

Discovery (bounded, returns a device list) and monitoring (unbounded,
streams every decoded packet) share one multicast socket.

Options Considered:
1. One socket per mode
   - Two binds on 5353, two sets of memberships
   - Every packet decoded twice
2. One shared socket, opened by whichever mode starts first and
   closed when neither needs it

Decision: Shared socket owned by the engine
- The engine is the only thing that opens or closes the transport
- Flags (_is_discovering / _is_monitoring) decide who still needs it
- One discovery at a time per engine; a second call fails fast with
  DiscoveryBusyError instead of queueing
- Monitoring can start and stop while a discovery is running

Query burst:
- For each interface: wait, send, wait - up to send_attempts times
- Stops early once the session is finished (quick hit, timeout or
  send failure)

Answer acceptance:
- Sender is not one of our own interface addresses
- Message is a standard-query response (QR=1, opcode 0)
- At least one answer record is named after a requested service
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..config import Config
from ..dns.composer import compose_query
from ..dns.message import Message
from ..dns.parser import parse
from ..errors import DiscoveryBusyError, TransportError
from .device import DefaultClassifier, Device, DeviceClassifier, build_device
from .netif import get_interface_addresses
from .options import DeviceFilter, DiscoveryOptions
from .transport import MulticastTransport

logger = logging.getLogger(__name__)

# Callback type for monitored packets
MessageCallback = Callable[[Message], None]

_CLOSED = object()


class SessionState(Enum):
    """Engine state, reported by priority."""
    IDLE = "idle"
    LISTENING = "listening"
    DISCOVERING = "discovering"
    MONITORING = "monitoring"


@dataclass
class _DiscoverySession:
    """Per-discovery state. Dropped when the discovery returns."""
    options: DiscoveryOptions
    devices: Dict[Optional[str], Device] = field(default_factory=dict)
    done: asyncio.Event = field(default_factory=asyncio.Event)
    error: Optional[Exception] = None

    @property
    def finished(self) -> bool:
        return self.done.is_set()

    def finish(self, error: Optional[Exception] = None):
        if self.done.is_set():
            return
        self.error = error
        self.done.set()


class MonitorSubscription:
    """
    Handle returned by start_monitoring().

    With a callback, each decoded packet is passed to it. Without one,
    packets are buffered and read with `async for`; once `maxsize`
    packets are waiting the oldest is dropped. After cancel() no
    further packets are delivered, buffered ones included. Cancelling
    the last subscription stops monitoring.
    """

    def __init__(self, engine: 'DnsSd', callback: Optional[MessageCallback] = None,
                 maxsize: int = 1000):
        self._engine = engine
        self._callback = callback
        self._queue: Optional[asyncio.Queue] = None
        if callback is None:
            self._queue = asyncio.Queue(maxsize=max(maxsize, 1))
        self._dropped = 0
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def dropped(self) -> int:
        """Packets discarded because nobody read the buffer in time."""
        return self._dropped

    def deliver(self, message: Message):
        if self._cancelled:
            return
        if self._callback is not None:
            try:
                self._callback(message)
            except Exception as e:
                logger.error(f"Monitor callback error: {e}")
            return

        if self._queue.full():
            self._queue.get_nowait()
            self._dropped += 1
            logger.debug(f"Monitor buffer full, dropped oldest packet ({self._dropped} so far)")
        self._queue.put_nowait(message)

    def cancel(self):
        """Stop deliveries to this subscription."""
        if self._cancelled:
            return
        self._cancelled = True
        self._engine._remove_subscription(self)
        if self._queue is not None:
            while not self._queue.empty():
                self._queue.get_nowait()
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        if self._queue is None:
            raise TypeError("Subscription has a callback; it cannot be iterated")
        return self

    async def __anext__(self) -> Message:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class DnsSd:
    """
    mDNS / DNS-SD discovery and monitoring engine.

    Each instance owns its own transport. At most one discover() runs
    per instance at a time.

    Usage:
        async with DnsSd() as sd:
            devices = await sd.discover('_googlecast._tcp.local', wait=2)
    """

    def __init__(self, config: Optional[Config] = None,
                 transport: Optional[MulticastTransport] = None,
                 get_addresses: Optional[Callable[[], List[str]]] = None,
                 classifier: Optional[DeviceClassifier] = None):
        """
        Args:
            config: Timing and network settings (defaults if omitted)
            transport: Multicast transport (built from config if omitted)
            get_addresses: Interface enumerator
            classifier: Model-name heuristics for discovered devices
        """
        self.config = config or Config()
        self._transport = transport or MulticastTransport(
            self.config.multicast_address, self.config.port
        )
        self._transport.on_datagram(self._on_datagram)
        self._get_addresses = get_addresses or get_interface_addresses
        self._classifier = classifier or DefaultClassifier()

        self._netif_addresses: List[str] = []
        self._session: Optional[_DiscoverySession] = None
        self._is_discovering = False
        self._is_monitoring = False
        self._subscriptions: List[MonitorSubscription] = []
        self._listen_lock = asyncio.Lock()

    @property
    def is_listening(self) -> bool:
        return self._transport.is_open

    @property
    def is_discovering(self) -> bool:
        return self._is_discovering

    @property
    def is_monitoring(self) -> bool:
        return self._is_monitoring

    @property
    def state(self) -> SessionState:
        if self._is_discovering:
            return SessionState.DISCOVERING
        if self._is_monitoring:
            return SessionState.MONITORING
        if self.is_listening:
            return SessionState.LISTENING
        return SessionState.IDLE

    @property
    def interface_addresses(self) -> List[str]:
        """Addresses enumerated at the start of the last session."""
        return list(self._netif_addresses)

    async def __aenter__(self) -> 'DnsSd':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop_monitoring()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover(self, name: Union[str, Sequence[str]],
                       query_type: Optional[str] = None,
                       key: Optional[str] = None,
                       wait: Optional[int] = None,
                       quick: bool = False,
                       device_filter: Optional[DeviceFilter] = None) -> List[Device]:
        """
        Query for services and collect the devices that answer.

        Args:
            name: Service name(s), e.g. "_googlecast._tcp.local"
            query_type: Record type to ask for, "*" for ANY
            key: Deduplicate devices by "address" or "fqdn"
            wait: Session length in seconds (config default if omitted)
            quick: Return as soon as the first device is accepted
            device_filter: Substring or predicate a device must pass

        Returns:
            Distinct devices, last response per key wins

        Raises:
            DiscoveryBusyError: A discovery is already running
            ValidationError: Invalid parameters
            TransportError: Socket could not be opened or a send failed
        """
        if self._is_discovering:
            raise DiscoveryBusyError("The discovery process is running")

        options = DiscoveryOptions.from_params(
            name,
            query_type=query_type if query_type is not None else self.config.query_type,
            key=key if key is not None else self.config.key,
            wait=wait,
            quick=quick,
            device_filter=device_filter,
            default_wait=self.config.discovery_wait,
        )

        self._is_discovering = True
        session = _DiscoverySession(options)
        self._session = session

        try:
            self._netif_addresses = self._get_addresses()
            if not self._netif_addresses:
                logger.warning("No usable network interfaces, nothing will be sent")

            await self._start_listening()

            logger.info(
                f"Discovering {', '.join(options.names)} "
                f"(type={options.query_type}, wait={options.wait}s, quick={options.quick})"
            )
            packet = compose_query(options.names, options.query_type)
            sender = asyncio.create_task(
                self._send_queries(session, packet, list(self._netif_addresses))
            )

            try:
                await asyncio.wait_for(session.done.wait(), timeout=options.wait)
            except asyncio.TimeoutError:
                pass
            finally:
                session.finish()
                sender.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sender

            if session.error is not None:
                raise session.error

            devices = list(session.devices.values())
            logger.info(f"Discovery finished: {len(devices)} device(s)")
            return devices

        finally:
            self._session = None
            self._is_discovering = False
            self._release_transport()

    async def _send_queries(self, session: _DiscoverySession, packet: bytes,
                            addresses: List[str]):
        """Send the query burst on each interface until the session ends."""
        try:
            for address in addresses:
                for attempt in range(self.config.send_attempts):
                    if session.finished:
                        return
                    await asyncio.sleep(self.config.retry_interval)
                    if session.finished:
                        return
                    await self._transport.send(packet, address)
                    logger.debug(f"Query sent via {address} (attempt {attempt + 1})")
                    await asyncio.sleep(self.config.retry_interval)
        except TransportError as e:
            logger.error(f"Discovery aborted: {e}")
            session.finish(e)

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    async def start_monitoring(self, callback: Optional[MessageCallback] = None) -> MonitorSubscription:
        """
        Start delivering every decoded packet.

        Calling it while already monitoring only adds a subscription.

        Args:
            callback: Called once per packet; omit to iterate the
                      returned subscription with `async for`

        Raises:
            TransportError: The socket could not be opened
        """
        if not self._is_monitoring:
            if not self._is_discovering:
                self._netif_addresses = self._get_addresses()
            try:
                await self._start_listening()
            except TransportError:
                self._is_monitoring = False
                self._release_transport()
                raise
            self._is_monitoring = True
            logger.info("Monitoring started")

        subscription = MonitorSubscription(self, callback, self.config.monitor_queue_size)
        self._subscriptions.append(subscription)
        return subscription

    async def stop_monitoring(self):
        """Stop monitoring and cancel every subscription."""
        was_monitoring = self._is_monitoring
        self._is_monitoring = False

        for subscription in list(self._subscriptions):
            subscription.cancel()

        self._release_transport()
        if was_monitoring:
            logger.info("Monitoring stopped")

    def _remove_subscription(self, subscription: MonitorSubscription):
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

        if self._is_monitoring and not self._subscriptions:
            self._is_monitoring = False
            self._release_transport()
            logger.info("Monitoring stopped (last subscription cancelled)")

    # ------------------------------------------------------------------
    # Transport lifecycle
    # ------------------------------------------------------------------

    async def _start_listening(self):
        async with self._listen_lock:
            if self._transport.is_open:
                return
            await self._transport.open(self._netif_addresses)
            await asyncio.sleep(self.config.listen_settle)

    def _release_transport(self):
        """Close the socket unless discovery or monitoring still needs it."""
        if self._is_discovering or self._is_monitoring:
            return
        self._transport.close()

    # ------------------------------------------------------------------
    # Inbound packets
    # ------------------------------------------------------------------

    def _on_datagram(self, data: bytes, addr: Tuple[str, int]):
        message = parse(data)
        if message is None:
            return
        message.source_address = addr[0]

        session = self._session
        if session is not None and not session.finished and self._is_answer(message):
            self._handle_answer(session, message)

        if self._is_monitoring:
            for subscription in list(self._subscriptions):
                subscription.deliver(message)

    def _is_answer(self, message: Message) -> bool:
        if message.source_address in self._netif_addresses:
            return False
        return message.header.is_response

    def _handle_answer(self, session: _DiscoverySession, message: Message):
        if not _is_targeted(message, session.options.names):
            return

        device = build_device(message, self._classifier)
        if not session.options.accepts(device):
            logger.debug(f"Filtered out response from {message.source_address}")
            return

        session.devices[session.options.key_for(device)] = device
        logger.debug(f"Found {device.fqdn or device.address} at {message.source_address}")

        if session.options.quick:
            session.finish()


def _normalize(name: str) -> str:
    return name.rstrip('.').lower()


def _is_targeted(message: Message, names: Sequence[str]) -> bool:
    """True if any answer record is named after a requested service."""
    wanted = {_normalize(n) for n in names}
    return any(record.name and _normalize(record.name) in wanted
               for record in message.answers)
