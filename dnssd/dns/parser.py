"""
Response Parser

Design Decision: Failure Mode
=============================

The socket sees every mDNS packet on the LAN, not just answers to
our own queries: printers, phones, TVs, other responders, and now
and then something truncated or simply broken.

Options Considered:
1. Raise on bad input, let the caller catch
2. Return None for anything we cannot decode

Decision: parse() returns None
- One bad packet must not disturb a discovery session
- Internals raise DecodeError; parse() is the only place that
  catches it
- rdata that does not fit its type's layout degrades to RawData
  instead of failing the whole message

Name compression:
- A pointer (top two bits set) refers back into the message
- Each pointer must land before the start of the segment it
  was found in, so chains always move backwards and terminate
- MAX_POINTER_JUMPS caps the chain length anyway
"""

import ipaddress
import logging
import struct
from typing import List, Optional, Tuple

from ..errors import DecodeError
from .constants import (
    CLASS_MASK, CLASS_TOP_BIT, HEADER_SIZE, MAX_POINTER_JUMPS,
    RecordType, class_name, type_name,
)
from .message import (
    AddressData, Header, Message, NameData, NsecData, Question, RData,
    RawData, ResourceRecord, SrvData, TxtData,
)

logger = logging.getLogger(__name__)

POINTER_MASK = 0xC0

NAME_TYPES = (RecordType.PTR, RecordType.CNAME, RecordType.NS)


def parse(data: bytes) -> Optional[Message]:
    """
    Decode a datagram into a Message.

    Returns:
        The decoded message, or None if `data` is not a DNS message
    """
    try:
        return MessageReader(data).read_message()
    except (DecodeError, struct.error, IndexError, ValueError) as e:
        logger.debug(f"Discarding undecodable packet ({len(data)} bytes): {e}")
        return None


class MessageReader:
    """Cursor over one message buffer."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.offset = 0

    def read_message(self) -> Message:
        header = self.read_header()

        questions = [self.read_question() for _ in range(header.qdcount)]
        answers = self.read_records(header.ancount)
        authorities = self.read_records(header.nscount)
        additionals = self.read_records(header.arcount)

        return Message(
            header=header,
            questions=questions,
            answers=answers,
            authorities=authorities,
            additionals=additionals,
        )

    def take(self, size: int) -> bytes:
        """Consume `size` bytes at the cursor."""
        end = self.offset + size
        if size < 0 or end > len(self.data):
            raise DecodeError(f"Truncated at offset {self.offset} (need {size} bytes)")
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def read_header(self) -> Header:
        if len(self.data) < HEADER_SIZE:
            raise DecodeError(f"Too short for a header: {len(self.data)} bytes")
        fields = struct.unpack('>HHHHHH', self.take(HEADER_SIZE))
        return Header(*fields)

    def read_question(self) -> Question:
        name, self.offset = read_name(self.data, self.offset)
        qtype, qclass = struct.unpack('>HH', self.take(4))
        return Question(
            name=name,
            type=type_name(qtype),
            qclass=class_name(qclass & CLASS_MASK),
            unicast_response=bool(qclass & CLASS_TOP_BIT),
        )

    def read_records(self, count: int) -> List[ResourceRecord]:
        return [self.read_record() for _ in range(count)]

    def read_record(self) -> ResourceRecord:
        name, self.offset = read_name(self.data, self.offset)
        rtype, rclass, ttl, rdlength = struct.unpack('>HHIH', self.take(10))

        start = self.offset
        self.take(rdlength)  # the cursor always moves past the whole rdata

        return ResourceRecord(
            name=name,
            type=type_name(rtype),
            rclass=class_name(rclass & CLASS_MASK),
            ttl=ttl,
            rdata=read_rdata(self.data, rtype, start, start + rdlength),
            cache_flush=bool(rclass & CLASS_TOP_BIT),
        )


def read_name(data: bytes, offset: int) -> Tuple[str, int]:
    """
    Read a possibly-compressed domain name.

    Args:
        data: The whole message (pointers are message offsets)
        offset: Where the name starts

    Returns:
        (dotted name, offset just past the name in the original position)
    """
    labels = []
    pos = offset
    segment_start = offset
    end = None
    jumps = 0

    while True:
        if pos >= len(data):
            raise DecodeError(f"Name runs past end of message at {pos}")
        length = data[pos]
        kind = length & POINTER_MASK

        if kind == POINTER_MASK:
            if pos + 1 >= len(data):
                raise DecodeError(f"Truncated compression pointer at {pos}")
            target = ((length & 0x3F) << 8) | data[pos + 1]
            if target >= segment_start:
                raise DecodeError(f"Compression pointer at {pos} does not point backwards")
            jumps += 1
            if jumps > MAX_POINTER_JUMPS:
                raise DecodeError("Too many compression pointers")
            if end is None:
                end = pos + 2
            pos = segment_start = target
            continue

        if kind:
            raise DecodeError(f"Reserved label type 0x{kind:02x} at {pos}")

        if length == 0:
            pos += 1
            break

        stop = pos + 1 + length
        if stop > len(data):
            raise DecodeError(f"Label runs past end of message at {pos}")
        labels.append(data[pos + 1:stop].decode('utf-8', errors='replace'))
        pos = stop

    if end is None:
        end = pos
    return '.'.join(labels), end


def read_rdata(data: bytes, rtype: int, start: int, end: int) -> RData:
    """Decode rdata occupying data[start:end] according to its type."""
    try:
        if rtype == RecordType.A and end - start == 4:
            return AddressData(str(ipaddress.IPv4Address(data[start:end])))
        if rtype == RecordType.AAAA and end - start == 16:
            return AddressData(str(ipaddress.IPv6Address(data[start:end])))
        if rtype in NAME_TYPES:
            return NameData(_read_contained_name(data, start, end))
        if rtype == RecordType.TXT:
            return TxtData(_read_txt(data, start, end))
        if rtype == RecordType.SRV:
            return _read_srv(data, start, end)
        if rtype == RecordType.NSEC:
            return _read_nsec(data, start, end)
    except DecodeError as e:
        logger.debug(f"Keeping malformed {type_name(rtype)} rdata as raw bytes: {e}")
    return RawData(data[start:end])


def _read_contained_name(data: bytes, start: int, end: int) -> str:
    name, name_end = read_name(data, start)
    if name_end > end:
        raise DecodeError("Name overruns rdata")
    return name


def _read_txt(data: bytes, start: int, end: int) -> dict:
    entries = {}
    pos = start
    while pos < end:
        length = data[pos]
        stop = pos + 1 + length
        if stop > end:
            raise DecodeError("TXT segment overruns rdata")
        segment = data[pos + 1:stop].decode('utf-8', errors='replace')
        pos = stop
        if not segment:
            continue
        if '=' in segment:
            key, value = segment.split('=', 1)
            entries[key] = value
        else:
            entries[segment] = True
    return entries


def _read_srv(data: bytes, start: int, end: int) -> SrvData:
    if end - start < 7:
        raise DecodeError("SRV rdata too short")
    priority, weight, port = struct.unpack('>HHH', data[start:start + 6])
    target = _read_contained_name(data, start + 6, end)
    return SrvData(priority=priority, weight=weight, port=port, target=target)


def _read_nsec(data: bytes, start: int, end: int) -> NsecData:
    next_name, pos = read_name(data, start)
    if pos > end:
        raise DecodeError("NSEC name overruns rdata")

    types = []
    while pos < end:
        if pos + 2 > end:
            raise DecodeError("Truncated NSEC window")
        window, length = data[pos], data[pos + 1]
        bitmap_end = pos + 2 + length
        if length == 0 or length > 32 or bitmap_end > end:
            raise DecodeError("Bad NSEC bitmap length")
        for index, byte in enumerate(data[pos + 2:bitmap_end]):
            for bit in range(8):
                if byte & (0x80 >> bit):
                    types.append(type_name(window * 256 + index * 8 + bit))
        pos = bitmap_end

    return NsecData(next_name=next_name, types=types)
