"""
Discovered Devices

A Device is a read-only summary of one response message: where it
came from, which service instance it names, and a best-effort model
name. The full decoded message stays attached for callers that need
more than the summary.

Design Decision: Model Name Heuristics
======================================

Model and family names come from vendor-specific TXT conventions
(Google Cast puts them in md/fn, Hue in md, Canon in ty, ...). These
are guesses, not protocol, so they live behind a small classifier
interface that the session engine calls once per device. Swap in your
own classifier to recognise other vendors.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..dns.message import AddressData, Message, NameData, SrvData, TxtData


@dataclass(frozen=True)
class Service:
    """Service advertised in an SRV record."""
    type: str
    protocol: str
    port: int

    def to_dict(self) -> dict:
        return {'type': self.type, 'protocol': self.protocol, 'port': self.port}


@dataclass(frozen=True)
class Device:
    """A device that answered a discovery query."""
    address: Optional[str]
    fqdn: Optional[str]
    model_name: Optional[str]
    family_name: Optional[str]
    service: Optional[Service]
    # excluded from equality and hashing
    message: Message = field(compare=False)

    def to_dict(self, include_message: bool = True) -> dict:
        data = {
            'address': self.address,
            'fqdn': self.fqdn,
            'modelName': self.model_name,
            'familyName': self.family_name,
            'service': self.service.to_dict() if self.service else None,
        }
        if include_message:
            data['packet'] = self.message.to_dict()
        return data


class DeviceClassifier:
    """
    Derives (model_name, family_name) from a decoded message.

    Subclass and override classify() to recognise other devices.
    """

    def classify(self, message: Message, fqdn: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
        return None, None


class DefaultClassifier(DeviceClassifier):
    """
    Known device families:
    - Apple TV (model from the _device-info TXT record)
    - Google Cast (md / fn TXT keys)
    - Philips hue bridges (md)
    - Canon printers (ty)
    Falls back to A-record host names (Apple-TV, iPad), then to the
    instance label of the PTR target if it looks like a display name.
    """

    def classify(self, message: Message, fqdn: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
        by_type = message.records_by_type()
        model_name = None
        family_name = None

        txt_records = by_type.get('TXT', [])
        if txt_records and isinstance(txt_records[0].rdata, TxtData):
            record = txt_records[0]
            txt = record.rdata
            name = record.name or ''

            if 'Apple TV' in name:
                model_name = 'Apple TV'
                for r in txt_records:
                    if '_device-info' in r.name and isinstance(r.rdata, TxtData):
                        model = r.rdata.get('model')
                        if model:
                            model_name = f"Apple TV {model}"
                            break
            elif '_googlecast' in name:
                model_name = _text(txt.get('md'))
                family_name = _text(txt.get('fn'))
            elif 'Philips hue' in name:
                model_name = 'Philips hue'
                md = _text(txt.get('md'))
                if md:
                    model_name += f" {md}"
            elif 'Canon' in name:
                model_name = _text(txt.get('ty'))

        if not model_name:
            a_records = by_type.get('A', [])
            if a_records:
                host = a_records[0].name
                if 'Apple-TV' in host:
                    model_name = 'Apple TV'
                elif 'iPad' in host:
                    model_name = 'iPad'

        if not model_name and fqdn:
            hostname = fqdn.split('.')[0]
            if ' ' in hostname:
                model_name = hostname

        return model_name, family_name


def _text(value) -> Optional[str]:
    """TXT values are str, or True for bare flags; only keep real strings."""
    if isinstance(value, str) and value:
        return value
    return None


def parse_service(record_name: str, port: int) -> Optional[Service]:
    """
    Split an SRV owner name (instance._type._proto.domain) into a Service.

    Returns None if the name has too few labels.
    """
    parts = record_name.split('.')
    parts.reverse()
    if len(parts) < 3:
        return None
    return Service(
        type=parts[2].lstrip('_'),
        protocol=parts[1].lstrip('_'),
        port=port,
    )


def build_device(message: Message, classifier: Optional[DeviceClassifier] = None) -> Device:
    """
    Build a Device from a response message.

    Args:
        message: Decoded response (source_address set by the receiver)
        classifier: Model-name heuristics (DefaultClassifier if omitted)
    """
    classifier = classifier or DefaultClassifier()
    by_type = message.records_by_type()

    address = None
    a_records = by_type.get('A', [])
    if a_records and isinstance(a_records[0].rdata, AddressData):
        address = a_records[0].rdata.address
    if not address:
        address = message.source_address

    fqdn = None
    ptr_records = by_type.get('PTR', [])
    if ptr_records and isinstance(ptr_records[0].rdata, NameData):
        fqdn = ptr_records[0].rdata.name

    service = None
    srv_records = by_type.get('SRV', [])
    if srv_records and isinstance(srv_records[0].rdata, SrvData):
        service = parse_service(srv_records[0].name, srv_records[0].rdata.port)

    model_name, family_name = classifier.classify(message, fqdn)

    return Device(
        address=address,
        fqdn=fqdn,
        model_name=model_name,
        family_name=family_name,
        service=service,
        message=message,
    )
