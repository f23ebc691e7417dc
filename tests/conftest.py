#!/usr/bin/env python3
"""pytest fixtures"""

import asyncio

import pytest

from dnssd.config import Config
from dnssd.discovery.session import DnsSd
from dnssd.errors import TransportError

from packets import LOCAL_ADDRESSES


class FakeTransport:
    """in-memory stand-in for MulticastTransport"""

    def __init__(self):
        self.is_open = False
        self.open_count = 0
        self.close_count = 0
        self.sent = []
        self.joined = []
        self.fail_open = False
        self.fail_send = False
        self.on_send = None
        self._handler = None

    def on_datagram(self, handler):
        self._handler = handler

    async def open(self, addresses):
        if self.is_open:
            return
        if self.fail_open:
            raise TransportError("bind failed")
        self.is_open = True
        self.open_count += 1
        self.joined = list(addresses)

    async def send(self, data, interface_address):
        if not self.is_open:
            raise TransportError("not open")
        if self.fail_send:
            raise TransportError("send failed")
        self.sent.append((data, interface_address))
        if self.on_send:
            self.on_send(data, interface_address)
        await asyncio.sleep(0)

    def close(self):
        if not self.is_open:
            return
        self.is_open = False
        self.close_count += 1
        self.joined = []

    def inject(self, data, address='192.168.1.50', port=5353):
        """pretend a datagram arrived"""
        self._handler(data, (address, port))


@pytest.fixture
def fast_config():
    """config with short pauses so sessions finish quickly"""
    return Config(retry_interval=0.01, listen_settle=0)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def engine(fast_config, fake_transport):
    """DnsSd wired to the fake transport and a fixed interface list"""
    return DnsSd(
        config=fast_config,
        transport=fake_transport,
        get_addresses=lambda: list(LOCAL_ADDRESSES),
    )
