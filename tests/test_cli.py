#!/usr/bin/env python3
"""test the command line interface"""

import json

import pytest
from click.testing import CliRunner

from dnssd import cli as cli_module
from dnssd.discovery.device import build_device
from dnssd.dns.parser import parse
from dnssd.errors import ValidationError

from packets import googlecast_response


def _chromecast():
    message = parse(googlecast_response())
    message.source_address = '192.168.1.50'
    return build_device(message)


class FakeDnsSd:
    """records discover() arguments and answers with canned devices"""

    calls = []
    devices = []
    error = None

    def __init__(self, config=None):
        self.config = config

    async def discover(self, name, **kwargs):
        FakeDnsSd.calls.append((name, kwargs))
        if FakeDnsSd.error:
            raise FakeDnsSd.error
        return list(FakeDnsSd.devices)


@pytest.fixture
def runner(monkeypatch):
    FakeDnsSd.calls = []
    FakeDnsSd.devices = []
    FakeDnsSd.error = None
    monkeypatch.setattr(cli_module, 'DnsSd', FakeDnsSd)
    return CliRunner()


def test_discover_json(runner):
    """test devices are printed as JSON with their packet"""
    FakeDnsSd.devices = [_chromecast()]

    result = runner.invoke(cli_module.cli, ['discover', '_googlecast._tcp.local', '--json'], obj={})

    assert result.exit_code == 0, result.output
    devices = json.loads(result.output)
    assert devices[0]['address'] == '192.168.1.50'
    assert devices[0]['modelName'] == 'Chromecast'
    assert devices[0]['familyName'] == 'Living Room'
    assert devices[0]['packet']['header']['answers'] == 1


def test_discover_passes_options(runner):
    """test command line options reach discover()"""
    result = runner.invoke(cli_module.cli, [
        'discover', '_a._tcp.local', '_b._tcp.local',
        '--type', 'PTR', '--key', 'fqdn', '--wait', '5', '--quick', '--filter', 'hue',
    ], obj={})

    assert result.exit_code == 0, result.output
    name, kwargs = FakeDnsSd.calls[0]
    assert name == ['_a._tcp.local', '_b._tcp.local']
    assert kwargs == {
        'query_type': 'PTR', 'key': 'fqdn', 'wait': 5, 'quick': True, 'device_filter': 'hue',
    }


def test_discover_table(runner):
    """test the default table output"""
    FakeDnsSd.devices = [_chromecast()]

    result = runner.invoke(cli_module.cli, ['discover', '_googlecast._tcp.local'], obj={})

    assert result.exit_code == 0, result.output
    assert 'Discovered Devices' in result.output


def test_discover_nothing_found(runner):
    result = runner.invoke(cli_module.cli, ['discover', '_googlecast._tcp.local'], obj={})

    assert result.exit_code == 0
    assert 'No devices found' in result.output


def test_discover_error_exit_code(runner):
    """test library errors become a non-zero exit"""
    FakeDnsSd.error = ValidationError('wait must be a positive integer')

    result = runner.invoke(cli_module.cli, ['discover', '_googlecast._tcp.local'], obj={})

    assert result.exit_code == 1
    assert 'wait must be a positive integer' in result.output


def test_discover_requires_a_name(runner):
    result = runner.invoke(cli_module.cli, ['discover'], obj={})
    assert result.exit_code != 0


def test_config_command(runner):
    """test the effective configuration is shown"""
    result = runner.invoke(cli_module.cli, ['config'], obj={})

    assert result.exit_code == 0
    assert 'multicast_address' in result.output
    assert '224.0.0.251' in result.output
