#!/usr/bin/env python3
"""test the discovery / monitoring session engine"""

import asyncio

import pytest

from dnssd.discovery.session import DnsSd, SessionState
from dnssd.dns.composer import compose_query
from dnssd.errors import DiscoveryBusyError, TransportError, ValidationError

from packets import (LOCAL_ADDRESSES, RESPONSE_FLAGS, build_packet, googlecast_response, hue_response,
                     ptr_record)

CAST = '_googlecast._tcp.local'
HUE = '_hue._tcp.local'


@pytest.mark.asyncio
async def test_quick_discovery_returns_early(engine, fake_transport):
    """test quick mode resolves on the first accepted device"""
    fake_transport.on_send = lambda data, iface: fake_transport.inject(googlecast_response())

    loop = asyncio.get_running_loop()
    started = loop.time()
    devices = await engine.discover(CAST, quick=True, wait=5)

    assert loop.time() - started < 1
    assert len(devices) == 1
    assert devices[0].model_name == 'Chromecast'
    assert len(fake_transport.sent) == 1


@pytest.mark.asyncio
async def test_quick_discovery_ignores_later_messages(engine, fake_transport):
    """test nothing is processed once a quick session is satisfied"""

    def answer(data, iface):
        fake_transport.inject(googlecast_response(address='192.168.1.50'), address='192.168.1.50')
        fake_transport.inject(googlecast_response(address='192.168.1.51'), address='192.168.1.51')

    fake_transport.on_send = answer
    devices = await engine.discover(CAST, quick=True, wait=5)

    assert [d.address for d in devices] == ['192.168.1.50']


@pytest.mark.asyncio
async def test_discovery_collects_and_dedups(engine, fake_transport):
    """test a timed session keeps one device per address, last one wins"""
    task = asyncio.create_task(engine.discover([CAST, HUE], wait=1))
    await asyncio.sleep(0.05)

    fake_transport.inject(googlecast_response(family='Kitchen'), address='192.168.1.50')
    fake_transport.inject(hue_response(), address='192.168.1.60')
    fake_transport.inject(googlecast_response(family='Bedroom'), address='192.168.1.50')

    devices = await task
    by_address = {d.address: d for d in devices}

    assert set(by_address) == {'192.168.1.50', '192.168.1.60'}
    assert by_address['192.168.1.50'].family_name == 'Bedroom'


@pytest.mark.asyncio
async def test_discovery_keyed_by_fqdn(engine, fake_transport):
    """test fqdn keys merge devices reporting different addresses"""
    task = asyncio.create_task(engine.discover(CAST, key='fqdn', wait=1))
    await asyncio.sleep(0.05)

    fake_transport.inject(googlecast_response(address='192.168.1.50'), address='192.168.1.50')
    fake_transport.inject(googlecast_response(address='192.168.1.52'), address='192.168.1.52')

    devices = await task
    assert len(devices) == 1
    assert devices[0].address == '192.168.1.52'


@pytest.mark.asyncio
async def test_discovery_ignores_non_answers(engine, fake_transport):
    """test own packets, queries, other services and garbage are not answers"""
    task = asyncio.create_task(engine.discover(CAST, wait=1))
    await asyncio.sleep(0.05)

    # from one of our own interface addresses
    fake_transport.inject(googlecast_response(), address=LOCAL_ADDRESSES[0])
    # a query carrying a matching known answer
    fake_transport.inject(
        build_packet(answers=[ptr_record(CAST, f'x.{CAST}')], flags=0),
        address='192.168.1.70',
    )
    # a response with a non-standard opcode
    fake_transport.inject(
        build_packet(answers=[ptr_record(CAST, f'x.{CAST}')], flags=RESPONSE_FLAGS | (2 << 11)),
        address='192.168.1.71',
    )
    # a response for another service
    fake_transport.inject(hue_response(), address='192.168.1.60')
    # not DNS at all
    fake_transport.inject(b'\x00\x01garbage', address='192.168.1.72')

    assert await task == []


@pytest.mark.asyncio
async def test_discovery_matches_trailing_dot(engine, fake_transport):
    """test a requested name with a trailing dot still matches"""
    fake_transport.on_send = lambda data, iface: fake_transport.inject(googlecast_response())
    devices = await engine.discover(CAST + '.', quick=True, wait=2)
    assert len(devices) == 1


@pytest.mark.asyncio
async def test_discovery_filter(engine, fake_transport):
    """test the string filter drops non-matching devices"""
    task = asyncio.create_task(engine.discover([CAST, HUE], wait=1, device_filter='hue'))
    await asyncio.sleep(0.05)

    fake_transport.inject(googlecast_response(), address='192.168.1.50')
    fake_transport.inject(hue_response(), address='192.168.1.60')

    devices = await task
    assert [d.model_name for d in devices] == ['Philips hue BSB002']


@pytest.mark.asyncio
async def test_discovery_raising_filter(engine, fake_transport):
    """test a raising predicate rejects the device and the session survives"""

    def broken(device):
        raise KeyError('nope')

    fake_transport.on_send = lambda data, iface: fake_transport.inject(googlecast_response())
    devices = await engine.discover(CAST, wait=1, device_filter=broken)

    assert devices == []
    assert engine.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_query_burst_per_interface(fast_config, fake_transport):
    """test three sends per interface, interfaces in order"""
    engine = DnsSd(fast_config, fake_transport, get_addresses=lambda: ['10.0.0.1', '10.0.1.1'])

    await engine.discover(CAST, query_type='ptr', wait=1)

    assert [iface for _, iface in fake_transport.sent] == ['10.0.0.1'] * 3 + ['10.0.1.1'] * 3
    assert fake_transport.sent[0][0] == compose_query([CAST], 'PTR')


@pytest.mark.asyncio
async def test_busy(engine, fake_transport):
    """test a second discovery fails while the first keeps running"""
    first = asyncio.create_task(engine.discover(CAST, wait=1))
    await asyncio.sleep(0)

    with pytest.raises(DiscoveryBusyError):
        await engine.discover(HUE)

    fake_transport.inject(googlecast_response(), address='192.168.1.50')
    devices = await first
    assert len(devices) == 1
    assert fake_transport.open_count == 1


@pytest.mark.asyncio
async def test_validation_before_network(engine, fake_transport):
    """test bad options fail without touching the transport"""
    with pytest.raises(ValidationError):
        await engine.discover(CAST, wait=0)

    assert fake_transport.open_count == 0
    assert engine.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_send_failure(engine, fake_transport):
    """test a send error rejects the discovery and releases the socket"""
    fake_transport.fail_send = True

    with pytest.raises(TransportError):
        await engine.discover(CAST, wait=5)

    assert not engine.is_discovering
    assert not fake_transport.is_open


@pytest.mark.asyncio
async def test_bind_failure(engine, fake_transport):
    """test an open error rejects the discovery and resets state"""
    fake_transport.fail_open = True

    with pytest.raises(TransportError):
        await engine.discover(CAST)

    assert engine.state == SessionState.IDLE

    # the engine is usable again afterwards
    fake_transport.fail_open = False
    fake_transport.on_send = lambda data, iface: fake_transport.inject(googlecast_response())
    assert len(await engine.discover(CAST, quick=True)) == 1


@pytest.mark.asyncio
async def test_socket_released_after_discovery(engine, fake_transport):
    """test the transport closes when discovery ends"""
    fake_transport.on_send = lambda data, iface: fake_transport.inject(googlecast_response())
    await engine.discover(CAST, quick=True)

    assert fake_transport.open_count == 1
    assert fake_transport.close_count == 1
    assert engine.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_monitoring_callback(engine, fake_transport):
    """test every decoded packet reaches the callback, garbage does not"""
    received = []
    await engine.start_monitoring(received.append)
    assert engine.state == SessionState.MONITORING

    fake_transport.inject(googlecast_response(), address='192.168.1.50')
    fake_transport.inject(compose_query([CAST]), address=LOCAL_ADDRESSES[0])
    fake_transport.inject(b'\xff' * 5, address='192.168.1.72')

    assert len(received) == 2
    assert received[0].source_address == '192.168.1.50'
    assert received[1].header.qr == 0

    await engine.stop_monitoring()
    fake_transport.inject(googlecast_response(), address='192.168.1.50')
    assert len(received) == 2
    assert engine.state == SessionState.IDLE
    assert not fake_transport.is_open


@pytest.mark.asyncio
async def test_monitoring_iteration(engine, fake_transport):
    """test a callback-less subscription can be iterated and ends on cancel"""
    subscription = await engine.start_monitoring()

    fake_transport.inject(hue_response(), address='192.168.1.60')
    message = await asyncio.wait_for(subscription.__anext__(), timeout=1)
    assert message.source_address == '192.168.1.60'

    fake_transport.inject(hue_response(), address='192.168.1.60')
    subscription.cancel()
    assert subscription.cancelled

    collected = [m async for m in subscription]
    assert collected == []


@pytest.mark.asyncio
async def test_cancelled_subscription_gets_nothing(engine, fake_transport):
    """test cancelling one subscription leaves the others running"""
    first, second = [], []
    sub = await engine.start_monitoring(first.append)
    await engine.start_monitoring(second.append)

    sub.cancel()
    fake_transport.inject(hue_response(), address='192.168.1.60')

    assert first == []
    assert len(second) == 1
    assert engine.is_monitoring


@pytest.mark.asyncio
async def test_monitoring_callback_error_isolated(engine, fake_transport):
    """test a failing observer does not stop delivery to others"""
    received = []

    def broken(message):
        raise ValueError('observer bug')

    await engine.start_monitoring(broken)
    await engine.start_monitoring(received.append)
    fake_transport.inject(hue_response(), address='192.168.1.60')

    assert len(received) == 1


@pytest.mark.asyncio
async def test_start_monitoring_twice(engine, fake_transport):
    """test a second start does not re-open the socket"""
    await engine.start_monitoring()
    await engine.start_monitoring()

    assert fake_transport.open_count == 1
    await engine.stop_monitoring()
    assert fake_transport.close_count == 1


@pytest.mark.asyncio
async def test_monitoring_start_failure_rolls_back(engine, fake_transport):
    """test a failed start leaves the engine idle"""
    fake_transport.fail_open = True

    with pytest.raises(TransportError):
        await engine.start_monitoring()

    assert not engine.is_monitoring
    assert engine.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_monitoring_restart_cycles(engine, fake_transport):
    """test start/stop/start transitions cleanly"""
    for _ in range(3):
        await engine.start_monitoring()
        assert fake_transport.is_open
        assert fake_transport.joined == LOCAL_ADDRESSES
        await engine.stop_monitoring()
        assert not fake_transport.is_open

    assert fake_transport.open_count == 3
    assert fake_transport.close_count == 3


@pytest.mark.asyncio
async def test_monitoring_outlives_discovery(engine, fake_transport):
    """test discovery leaves the socket open for an active monitor"""
    received = []
    await engine.start_monitoring(received.append)

    fake_transport.on_send = lambda data, iface: fake_transport.inject(googlecast_response())
    devices = await engine.discover(CAST, quick=True)

    assert len(devices) == 1
    assert len(received) == 1
    assert fake_transport.is_open
    assert fake_transport.open_count == 1
    assert engine.state == SessionState.MONITORING

    await engine.stop_monitoring()
    assert not fake_transport.is_open


@pytest.mark.asyncio
async def test_monitor_sees_non_matching_during_discovery(engine, fake_transport):
    """test monitoring receives packets the discovery ignores"""
    received = []
    await engine.start_monitoring(received.append)

    task = asyncio.create_task(engine.discover(CAST, wait=1))
    await asyncio.sleep(0.05)
    assert engine.state == SessionState.DISCOVERING

    fake_transport.inject(hue_response(), address='192.168.1.60')

    assert await task == []
    assert len(received) == 1
    await engine.stop_monitoring()


@pytest.mark.asyncio
async def test_context_manager(fast_config, fake_transport):
    """test leaving the context stops monitoring"""
    async with DnsSd(fast_config, fake_transport, get_addresses=lambda: []) as sd:
        await sd.start_monitoring()
        assert fake_transport.is_open

    assert not fake_transport.is_open
    assert sd.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_unread_subscription_buffer_is_bounded(fast_config, fake_transport):
    """test an unread subscription keeps only the newest packets"""
    fast_config.monitor_queue_size = 5
    engine = DnsSd(fast_config, fake_transport, get_addresses=lambda: list(LOCAL_ADDRESSES))
    subscription = await engine.start_monitoring()

    for index in range(200):
        fake_transport.inject(build_packet(answers=[ptr_record(CAST, f'x.{CAST}')], txid=index),
                              address='192.168.1.50')

    assert subscription.dropped == 195
    kept = [await asyncio.wait_for(subscription.__anext__(), timeout=1) for _ in range(5)]
    assert [m.header.id for m in kept] == [195, 196, 197, 198, 199]


@pytest.mark.asyncio
async def test_cancelling_last_subscription_stops_monitoring(engine, fake_transport):
    """test the socket is released once no subscription is left"""
    first = await engine.start_monitoring(lambda message: None)
    second = await engine.start_monitoring()

    first.cancel()
    assert engine.is_monitoring
    assert fake_transport.is_open

    second.cancel()
    assert not engine.is_monitoring
    assert engine.state == SessionState.IDLE
    assert not fake_transport.is_open


@pytest.mark.asyncio
async def test_cancelling_last_subscription_during_discovery(engine, fake_transport):
    """test a running discovery keeps the socket after monitoring ends"""
    subscription = await engine.start_monitoring(lambda message: None)
    task = asyncio.create_task(engine.discover(CAST, wait=1))
    await asyncio.sleep(0.05)

    subscription.cancel()
    assert not engine.is_monitoring
    assert fake_transport.is_open

    fake_transport.inject(googlecast_response(), address='192.168.1.50')
    assert len(await task) == 1
    assert not fake_transport.is_open
