#!/usr/bin/env python3
"""test query composition"""

import struct

import pytest

from dnssd.dns.composer import compose_query, encode_name
from dnssd.dns.parser import parse


def test_encode_name_labels():
    """test names become length-prefixed labels"""
    assert encode_name('_googlecast._tcp.local') == b'\x0b_googlecast\x04_tcp\x05local\x00'


def test_encode_name_trailing_dot():
    """test a trailing dot does not add an empty label"""
    assert encode_name('_hue._tcp.local.') == encode_name('_hue._tcp.local')


def test_encode_name_label_too_long():
    """test labels over 63 bytes are refused"""
    with pytest.raises(ValueError):
        encode_name('a' * 64 + '.local')


def test_compose_header():
    """test the fixed header: id 0, flags 0, one question per name"""
    packet = compose_query(['_googlecast._tcp.local', '_hue._tcp.local'])
    assert struct.unpack('>HHHHHH', packet[:12]) == (0, 0, 2, 0, 0, 0)


def test_compose_any_type_and_in_class():
    """test the wildcard becomes ANY (0xff) with class IN"""
    packet = compose_query(['_googlecast._tcp.local'])
    assert packet[-4:] == b'\x00\xff\x00\x01'


def test_compose_specific_type():
    """test a symbolic type is encoded by its code"""
    packet = compose_query(['_googlecast._tcp.local'], 'PTR')
    assert packet[-4:] == b'\x00\x0c\x00\x01'


@pytest.mark.parametrize('query_type,code', [('SPF', 99), ('caa', 257), ('HTTPS', 65), ('TYPE65280', 65280)])
def test_compose_registry_and_generic_types(query_type, code):
    """test any registry name or the TYPE<n> form encodes its code"""
    packet = compose_query(['example.local'], query_type)
    assert packet[-4:] == struct.pack('>HH', code, 1)


def test_compose_no_names():
    """test an empty name list is refused"""
    with pytest.raises(ValueError):
        compose_query([])


def test_compose_parse_round_trip():
    """test a composed query decodes back to the same question"""
    message = parse(compose_query(['_googlecast._tcp.local']))

    assert message is not None
    assert message.header.qdcount == 1
    assert message.header.qr == 0
    assert len(message.questions) == 1
    question = message.questions[0]
    assert question.name == '_googlecast._tcp.local'
    assert question.type == 'ANY'
    assert question.qclass == 'IN'
    assert message.answers == []
