"""
Error Types

Design Decision: Error Taxonomy
===============================

Callers only need to tell three situations apart:
- They passed bad discovery options (fix the call)
- A discovery is already running on this instance (wait and retry)
- The socket could not be bound or a send failed (retry later)

Malformed packets never surface as errors; the parser absorbs DecodeError
and returns None. Each class also derives from the closest builtin so
callers catching ValueError / RuntimeError / OSError keep working.
"""


class DnsSdError(Exception):
    """Base exception for DNS-SD discovery errors."""


class ValidationError(DnsSdError, ValueError):
    """Invalid discovery options. Raised before any network activity."""


class DiscoveryBusyError(DnsSdError, RuntimeError):
    """A discovery session is already running."""


class TransportError(DnsSdError, OSError):
    """Socket bind, membership or send failure."""


class DecodeError(DnsSdError):
    """Malformed DNS message (internal to the parser)."""
