"""
DNS Constants

Design Decision: Type/Class Tables
==================================

Options Considered:
1. Plain dicts (name -> code) plus reverse dicts
2. IntEnum - one table, lookups both ways
3. Pull the tables from a DNS library

Decision: IntEnum
- RecordType['PTR'] and RecordType(12) from the same definition
- Codes outside the table still have a printable name (TYPE<n>),
  matching how dig and tcpdump print them
- The full IANA type registry; no dependency for a table of numbers

mDNS specifics (RFC 6762):
- Group 224.0.0.251, port 5353
- Top bit of a question's class asks for a unicast response
- Top bit of a record's class is the cache-flush bit
"""

import re
from enum import IntEnum

# mDNS wire constants
MDNS_GROUP = '224.0.0.251'
MDNS_PORT = 5353

HEADER_SIZE = 12
WILDCARD_TYPE = '*'

MAX_LABEL_LENGTH = 63
# Bound on compression pointers followed while reading one name
MAX_POINTER_JUMPS = 32

# Header flag masks
FLAG_QR = 0x8000
FLAG_AA = 0x0400
FLAG_TC = 0x0200
FLAG_RD = 0x0100
FLAG_RA = 0x0080
OPCODE_SHIFT = 11
OPCODE_MASK = 0x0F
RCODE_MASK = 0x000F

OPCODE_QUERY = 0

# Top bit of the class field
CLASS_TOP_BIT = 0x8000
CLASS_MASK = 0x7FFF

# Unknown types are written TYPE<n>, as dig and tcpdump print them
GENERIC_TYPE_PATTERN = re.compile(r'^TYPE([0-9]{1,5})$')


class RecordType(IntEnum):
    """DNS resource record types (IANA registry)."""
    A = 1
    NS = 2
    MD = 3
    MF = 4
    CNAME = 5
    SOA = 6
    MB = 7
    MG = 8
    MR = 9
    NULL = 10
    WKS = 11
    PTR = 12
    HINFO = 13
    MINFO = 14
    MX = 15
    TXT = 16
    RP = 17
    AFSDB = 18
    X25 = 19
    ISDN = 20
    RT = 21
    NSAP = 22
    NSAP_PTR = 23
    SIG = 24
    KEY = 25
    PX = 26
    GPOS = 27
    AAAA = 28
    LOC = 29
    NXT = 30
    EID = 31
    NIMLOC = 32
    SRV = 33
    ATMA = 34
    NAPTR = 35
    KX = 36
    CERT = 37
    A6 = 38
    DNAME = 39
    SINK = 40
    OPT = 41
    APL = 42
    DS = 43
    SSHFP = 44
    IPSECKEY = 45
    RRSIG = 46
    NSEC = 47
    DNSKEY = 48
    DHCID = 49
    NSEC3 = 50
    NSEC3PARAM = 51
    TLSA = 52
    SMIMEA = 53
    HIP = 55
    NINFO = 56
    RKEY = 57
    TALINK = 58
    CDS = 59
    CDNSKEY = 60
    OPENPGPKEY = 61
    CSYNC = 62
    ZONEMD = 63
    SVCB = 64
    HTTPS = 65
    SPF = 99
    UINFO = 100
    UID = 101
    GID = 102
    UNSPEC = 103
    NID = 104
    L32 = 105
    L64 = 106
    LP = 107
    EUI48 = 108
    EUI64 = 109
    TKEY = 249
    TSIG = 250
    IXFR = 251
    AXFR = 252
    MAILB = 253
    MAILA = 254
    ANY = 255
    URI = 256
    CAA = 257
    AVC = 258
    DOA = 259
    AMTRELAY = 260
    RESINFO = 261
    TA = 32768
    DLV = 32769


class RecordClass(IntEnum):
    """DNS classes."""
    IN = 1
    CS = 2
    CH = 3
    HS = 4
    ANY = 255


def type_name(code: int) -> str:
    """Symbolic name for a type code, TYPE<n> if unknown."""
    try:
        return RecordType(code).name
    except ValueError:
        return f"TYPE{code}"


def class_name(code: int) -> str:
    """Symbolic name for a class code, CLASS<n> if unknown."""
    try:
        return RecordClass(code).name
    except ValueError:
        return f"CLASS{code}"


def type_code(name: str) -> int:
    """
    Numeric code for a symbolic type name.

    '*' maps to ANY and the generic TYPE<n> form (RFC 3597) maps to n.
    Raises KeyError for names that name no 16-bit type code.
    """
    if name == WILDCARD_TYPE:
        return RecordType.ANY.value
    upper = name.upper()
    if upper in RecordType.__members__:
        return RecordType[upper].value
    match = GENERIC_TYPE_PATTERN.match(upper)
    if match and int(match.group(1)) <= 0xFFFF:
        return int(match.group(1))
    raise KeyError(name)
