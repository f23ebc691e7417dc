"""
Discovery Options

Validates what a caller passes to discover() before any socket is
touched, and evaluates the device filter during the session.

Filters:
- str: passes if it is a substring of fqdn, address, model_name
  or family_name
- callable: passes if it returns something truthy; an exception
  inside the predicate counts as "does not pass"
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from ..dns.constants import MAX_LABEL_LENGTH, WILDCARD_TYPE, type_code
from ..errors import ValidationError
from .device import Device

logger = logging.getLogger(__name__)

MAX_NAMES = 255
DEFAULT_WAIT = 3  # seconds
KEYS = ('address', 'fqdn')

TYPE_PATTERN = re.compile(r'^[A-Za-z0-9]{1,10}$')

DeviceFilter = Union[str, Callable[[Device], object]]


@dataclass
class DiscoveryOptions:
    """Validated discovery parameters."""
    names: List[str]
    query_type: str = WILDCARD_TYPE
    key: str = 'address'
    wait: int = DEFAULT_WAIT
    quick: bool = False
    device_filter: Optional[DeviceFilter] = None

    @classmethod
    def from_params(cls, name: Union[str, Sequence[str]],
                    query_type: Optional[str] = None,
                    key: Optional[str] = None,
                    wait: Optional[int] = None,
                    quick: bool = False,
                    device_filter: Optional[DeviceFilter] = None,
                    default_wait: int = DEFAULT_WAIT) -> 'DiscoveryOptions':
        """
        Validate caller input.

        Args:
            name: Service name or list of 1-255 service names
            query_type: Record type name ("PTR", "A", ...) or "*"
            key: "address" (default) or "fqdn"
            wait: Session length in whole seconds
            quick: Return as soon as one device is found
            device_filter: Substring or predicate

        Raises:
            ValidationError: Describing the first invalid parameter
        """
        options = cls(names=_check_names(name), wait=default_wait)

        if query_type is not None:
            options.query_type = _check_type(query_type)

        if key is not None:
            if not isinstance(key, str) or key not in KEYS:
                raise ValidationError(f"The `key` must be one of {KEYS}, got {key!r}")
            options.key = key

        if wait is not None:
            if isinstance(wait, bool) or not isinstance(wait, int) or wait <= 0:
                raise ValidationError(f"The `wait` must be a positive integer, got {wait!r}")
            options.wait = wait

        if not isinstance(quick, bool):
            raise ValidationError(f"The `quick` must be a boolean, got {quick!r}")
        options.quick = quick

        if device_filter is not None:
            if not isinstance(device_filter, str) and not callable(device_filter):
                raise ValidationError("The `filter` must be a string or a callable")
            # An empty string filters nothing
            options.device_filter = device_filter or None

        return options

    def accepts(self, device: Device) -> bool:
        """Evaluate the filter against a device."""
        if self.device_filter is None:
            return True
        if isinstance(self.device_filter, str):
            return _matches_text(device, self.device_filter)
        try:
            return bool(self.device_filter(device))
        except Exception as e:
            logger.debug(f"Filter raised for {device.address}, treating as no match: {e}")
            return False

    def key_for(self, device: Device) -> Optional[str]:
        """The aggregation key for a device."""
        return device.fqdn if self.key == 'fqdn' else device.address


def _check_names(name) -> List[str]:
    if isinstance(name, str):
        names = [name]
    elif isinstance(name, (list, tuple)):
        if not name:
            raise ValidationError("The `name` must be a non-empty list")
        if len(name) > MAX_NAMES:
            raise ValidationError(f"The `name` can include up to {MAX_NAMES} elements")
        names = list(name)
    else:
        raise ValidationError("The `name` must be a string or a list of strings")

    for n in names:
        if not isinstance(n, str) or not n:
            raise ValidationError("The `name` must contain only non-empty strings")
        for label in n.rstrip('.').split('.'):
            if not label or len(label.encode('utf-8')) > MAX_LABEL_LENGTH:
                raise ValidationError(f"The `name` {n!r} has an empty or over-long label")
    return names


def _check_type(query_type) -> str:
    if not isinstance(query_type, str):
        raise ValidationError("The `type` must be a string")
    if query_type == WILDCARD_TYPE:
        return query_type
    if not TYPE_PATTERN.match(query_type):
        raise ValidationError(f"The `type` is invalid: {query_type!r}")
    normalized = query_type.upper()
    try:
        type_code(normalized)
    except KeyError:
        raise ValidationError(f"The `type` is not a known record type: {query_type!r}") from None
    return normalized


def _matches_text(device: Device, text: str) -> bool:
    for value in (device.fqdn, device.address, device.model_name, device.family_name):
        if value and text in value:
            return True
    return False
