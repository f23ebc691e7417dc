"""
DNS Message Model

Design Decision: rdata Representation
=====================================

Options Considered:
1. Untyped values (str / dict / bytes) switched on record.type
2. One dataclass per rdata layout (tagged union)
3. A generic dict per record

Decision: One frozen dataclass per rdata layout
- isinstance() checks instead of type-string branching
- RawData keeps bytes for anything we do not decode, so an
  unknown record is still reported rather than dropped
- Every variant has .value (the natural Python value) and
  to_dict() for JSON output

Layouts:
- AddressData: A / AAAA
- NameData:    PTR / CNAME / NS
- TxtData:     TXT (key -> str, or True for bare flags)
- SrvData:     SRV
- NsecData:    NSEC
- RawData:     everything else
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .constants import (
    FLAG_AA, FLAG_QR, FLAG_RA, FLAG_RD, FLAG_TC,
    OPCODE_MASK, OPCODE_QUERY, OPCODE_SHIFT, RCODE_MASK,
)


@dataclass(frozen=True)
class AddressData:
    """A / AAAA rdata."""
    address: str

    @property
    def value(self) -> str:
        return self.address

    def to_dict(self) -> Any:
        return self.address


@dataclass(frozen=True)
class NameData:
    """PTR / CNAME / NS rdata: a domain name."""
    name: str

    @property
    def value(self) -> str:
        return self.name

    def to_dict(self) -> Any:
        return self.name


@dataclass(frozen=True)
class TxtData:
    """TXT rdata. Segments without '=' are stored as True."""
    entries: Dict[str, Union[str, bool]] = field(default_factory=dict)

    @property
    def value(self) -> Dict[str, Union[str, bool]]:
        return self.entries

    def get(self, key: str, default=None):
        return self.entries.get(key, default)

    def to_dict(self) -> Any:
        return dict(self.entries)


@dataclass(frozen=True)
class SrvData:
    """SRV rdata."""
    priority: int
    weight: int
    port: int
    target: str

    @property
    def value(self) -> 'SrvData':
        return self

    def to_dict(self) -> Any:
        return {
            'priority': self.priority,
            'weight': self.weight,
            'port': self.port,
            'target': self.target,
        }


@dataclass(frozen=True)
class NsecData:
    """NSEC rdata: next domain name and the types present."""
    next_name: str
    types: List[str] = field(default_factory=list)

    @property
    def value(self) -> 'NsecData':
        return self

    def to_dict(self) -> Any:
        return {'next_name': self.next_name, 'types': list(self.types)}


@dataclass(frozen=True)
class RawData:
    """Undecoded rdata."""
    data: bytes = b''

    @property
    def value(self) -> bytes:
        return self.data

    def to_dict(self) -> Any:
        return self.data.hex()


RData = Union[AddressData, NameData, TxtData, SrvData, NsecData, RawData]


@dataclass
class Header:
    """
    The fixed 12-byte message header.

    Counts are the ones read off the wire; the parser refuses messages
    whose sections do not hold that many entries.
    """
    id: int = 0
    flags: int = 0
    qdcount: int = 0
    ancount: int = 0
    nscount: int = 0
    arcount: int = 0

    @property
    def qr(self) -> int:
        return 1 if self.flags & FLAG_QR else 0

    @property
    def opcode(self) -> int:
        return (self.flags >> OPCODE_SHIFT) & OPCODE_MASK

    @property
    def aa(self) -> int:
        return 1 if self.flags & FLAG_AA else 0

    @property
    def tc(self) -> int:
        return 1 if self.flags & FLAG_TC else 0

    @property
    def rd(self) -> int:
        return 1 if self.flags & FLAG_RD else 0

    @property
    def ra(self) -> int:
        return 1 if self.flags & FLAG_RA else 0

    @property
    def rcode(self) -> int:
        return self.flags & RCODE_MASK

    @property
    def is_response(self) -> bool:
        """True for a standard-query response (QR=1, opcode 0)."""
        return self.qr == 1 and self.opcode == OPCODE_QUERY

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'qr': self.qr,
            'op': self.opcode,
            'aa': self.aa,
            'tc': self.tc,
            'rd': self.rd,
            'ra': self.ra,
            'rcode': self.rcode,
            'questions': self.qdcount,
            'answers': self.ancount,
            'authorities': self.nscount,
            'additionals': self.arcount,
        }


@dataclass
class Question:
    """A question section entry."""
    name: str
    type: str
    qclass: str = 'IN'
    unicast_response: bool = False

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'type': self.type,
            'class': self.qclass,
            'unicast_response': self.unicast_response,
        }


@dataclass
class ResourceRecord:
    """An answer / authority / additional record."""
    name: str
    type: str
    rclass: str
    ttl: int
    rdata: RData
    cache_flush: bool = False

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'type': self.type,
            'class': self.rclass,
            'flush': self.cache_flush,
            'ttl': self.ttl,
            'rdata': self.rdata.to_dict(),
        }


@dataclass
class Message:
    """
    A decoded DNS message.

    source_address is filled in by the receiver; it is not part of the
    wire format.
    """
    header: Header
    questions: List[Question] = field(default_factory=list)
    answers: List[ResourceRecord] = field(default_factory=list)
    authorities: List[ResourceRecord] = field(default_factory=list)
    additionals: List[ResourceRecord] = field(default_factory=list)
    source_address: Optional[str] = None

    def records(self) -> List[ResourceRecord]:
        """All records: answers, then authorities, then additionals."""
        return self.answers + self.authorities + self.additionals

    def records_by_type(self) -> Dict[str, List[ResourceRecord]]:
        """Group every record by its symbolic type, preserving order."""
        grouped: Dict[str, List[ResourceRecord]] = {}
        for record in self.records():
            grouped.setdefault(record.type, []).append(record)
        return grouped

    def summary(self) -> str:
        """One line, roughly what tcpdump would print."""
        kind = 'response' if self.header.qr else 'query'
        counts = (
            f"[{len(self.questions)}q/{len(self.answers)}an/"
            f"{len(self.authorities)}ns/{len(self.additionals)}ar]"
        )
        if self.answers:
            items = [f"{r.type} {r.name}" for r in self.answers[:3]]
            if len(self.answers) > 3:
                items.append(f"+{len(self.answers) - 3} more")
        else:
            items = [f"{q.type}? {q.name}" for q in self.questions[:3]]
        text = f"{self.source_address or '?'} {kind} {counts}"
        if items:
            text += ": " + ", ".join(items)
        return text

    def to_dict(self) -> dict:
        return {
            'address': self.source_address,
            'header': self.header.to_dict(),
            'questions': [q.to_dict() for q in self.questions],
            'answers': [r.to_dict() for r in self.answers],
            'authorities': [r.to_dict() for r in self.authorities],
            'additionals': [r.to_dict() for r in self.additionals],
        }
