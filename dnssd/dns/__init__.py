"""
DNS Module - Message Codec

Composes mDNS queries and decodes responses.
"""

from .constants import MDNS_GROUP, MDNS_PORT, RecordClass, RecordType, type_code, type_name
from .message import (
    AddressData, Header, Message, NameData, NsecData, Question,
    RawData, ResourceRecord, SrvData, TxtData,
)
from .composer import compose_query, encode_name
from .parser import parse

__all__ = [
    'MDNS_GROUP',
    'MDNS_PORT',
    'RecordClass',
    'RecordType',
    'type_code',
    'type_name',
    'AddressData',
    'Header',
    'Message',
    'NameData',
    'NsecData',
    'Question',
    'RawData',
    'ResourceRecord',
    'SrvData',
    'TxtData',
    'compose_query',
    'encode_name',
    'parse',
]
