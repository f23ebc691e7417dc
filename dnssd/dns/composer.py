"""
Query Composer

Builds the multicast query sent at the start of a discovery:

```
+--------+--------+--------+--------+--------+--------+
| ID (0) | FLAGS 0| QDCOUNT| AN (0) | NS (0) | AR (0) |
+--------+--------+--------+--------+--------+--------+
| QNAME (labels, 0-terminated) | QTYPE | QCLASS (IN)  |  x QDCOUNT
+------------------------------+-------+--------------+
```

No compression is used on the way out; a handful of service names
fits comfortably in one datagram.
"""

import struct
from typing import Sequence

from .constants import MAX_LABEL_LENGTH, RecordClass, WILDCARD_TYPE, type_code


def encode_name(name: str) -> bytes:
    """
    Encode a dotted name as length-prefixed labels.

    A trailing dot is accepted and ignored.
    """
    out = bytearray()
    for label in name.rstrip('.').split('.'):
        raw = label.encode('utf-8')
        if len(raw) > MAX_LABEL_LENGTH:
            raise ValueError(f"Label too long ({len(raw)} bytes): {label!r}")
        out.append(len(raw))
        out += raw
    out.append(0)
    return bytes(out)


def compose_query(names: Sequence[str], query_type: str = WILDCARD_TYPE) -> bytes:
    """
    Build a query message asking for every name in `names`.

    Args:
        names: Service names, e.g. ["_googlecast._tcp.local"]
        query_type: Symbolic record type ("PTR", "A", ...) or "*" for ANY

    Returns:
        The encoded message
    """
    if not names:
        raise ValueError("At least one name is required")

    qtype = type_code(query_type)
    header = struct.pack('>HHHHHH', 0, 0, len(names), 0, 0, 0)

    questions = bytearray()
    for name in names:
        questions += encode_name(name)
        questions += struct.pack('>HH', qtype, RecordClass.IN.value)

    return header + bytes(questions)
