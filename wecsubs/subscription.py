"""
Subscription records.

A ``Subscription`` wraps the XML document returned by ``wecutil gs /f:xml``
together with the host it was read from.
"""
import copy
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from defusedxml import ElementTree as DefusedET

from .identity import parse_sddl
from .remoting import HostExecutor
from .schema import find_all, find_path, parse_bool

logger = logging.getLogger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'
_DECLARATION = re.compile(r'^<\?xml[^>]*\?>\s*')


def parse_document(xml_text: str) -> ET.Element:
    """Parse a subscription document."""
    # The text is already decoded; a declared encoding (wecutil may claim
    # UTF-16) no longer applies.
    return DefusedET.fromstring(_DECLARATION.sub('', xml_text.strip(), count=1))


def serialize_document(document: ET.Element) -> str:
    """Serialize a subscription document for ``wecutil cs``."""
    return XML_DECLARATION + ET.tostring(document, encoding='unicode')


def _parse_millis(text: Optional[str]) -> Optional[timedelta]:
    if text is None or not text.strip():
        return None
    return timedelta(milliseconds=int(text.strip()))


def _parse_timestamp(text: Optional[str]) -> Optional[datetime]:
    if text is None or not text.strip():
        return None
    value = text.strip()
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning(f"Unrecognized expiration timestamp '{text}'")
        return None


@dataclass
class Subscription:
    """A WEC subscription read from one host."""
    document: ET.Element
    computer_name: str
    executor: Optional[HostExecutor] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_xml(cls, xml_text: str, computer_name: str,
                 executor: Optional[HostExecutor] = None) -> 'Subscription':
        return cls(parse_document(xml_text), computer_name, executor)

    def _text(self, *path: str) -> Optional[str]:
        element = find_path(self.document, *path)
        if element is None:
            return None
        return element.text or ''

    def _attr(self, attribute: str, *path: str) -> Optional[str]:
        element = find_path(self.document, *path)
        if element is None:
            return None
        return element.get(attribute)

    def _list(self, *path: str) -> List[str]:
        parent = find_path(self.document, *path[:-1])
        if parent is None:
            return []
        return [(e.text or '').strip() for e in find_all(parent, path[-1])]

    @property
    def name(self) -> str:
        return self._text('SubscriptionId') or ''

    @property
    def subscription_type(self) -> Optional[str]:
        return self._text('SubscriptionType')

    @property
    def description(self) -> Optional[str]:
        return self._text('Description')

    @property
    def enabled(self) -> bool:
        return parse_bool(self._text('Enabled'))

    @property
    def uri(self) -> Optional[str]:
        return self._text('Uri')

    @property
    def configuration_mode(self) -> Optional[str]:
        return self._text('ConfigurationMode')

    @property
    def delivery_mode(self) -> Optional[str]:
        return self._attr('Mode', 'Delivery')

    @property
    def max_items(self) -> Optional[int]:
        text = self._text('Delivery', 'Batching', 'MaxItems')
        return int(text) if text and text.strip() else None

    @property
    def max_latency(self) -> Optional[timedelta]:
        return _parse_millis(self._text('Delivery', 'Batching', 'MaxLatencyTime'))

    @property
    def heartbeat_interval(self) -> Optional[timedelta]:
        return _parse_millis(self._attr('Interval', 'Delivery', 'PushSettings', 'Heartbeat'))

    @property
    def expires(self) -> Optional[datetime]:
        return _parse_timestamp(self._text('Expires'))

    @property
    def query(self) -> Optional[str]:
        text = self._text('Query')
        return text.strip() if text is not None else None

    @property
    def read_existing_events(self) -> bool:
        return parse_bool(self._text('ReadExistingEvents'))

    @property
    def transport(self) -> Optional[str]:
        return self._text('TransportName')

    @property
    def content_format(self) -> Optional[str]:
        return self._text('ContentFormat')

    @property
    def locale(self) -> Optional[str]:
        return self._attr('Language', 'Locale')

    @property
    def log_file(self) -> Optional[str]:
        return self._text('LogFile')

    @property
    def publisher_name(self) -> Optional[str]:
        return self._text('PublisherName')

    @property
    def allowed_source_domain_computers(self) -> Optional[str]:
        """The raw access descriptor of domain source computers."""
        return self._text('AllowedSourceDomainComputers')

    @property
    def source_domain_computers(self) -> List[str]:
        """SIDs granted access by the domain source computer descriptor."""
        return parse_sddl(self.allowed_source_domain_computers or '')

    @property
    def source_non_domain_dns_list(self) -> List[str]:
        return self._list('AllowedSourceNonDomainComputers', 'AllowedSubjectList', 'Subject')

    @property
    def source_non_domain_issuer_ca_thumbprint(self) -> List[str]:
        return self._list('AllowedSourceNonDomainComputers', 'AllowedIssuerCAList', 'IssuerCA')

    def copy_document(self) -> ET.Element:
        """Get an independent copy of the document for mutation."""
        return copy.deepcopy(self.document)

    def to_xml(self) -> str:
        return serialize_document(self.document)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the subscription for output formatting."""
        return {
            'computer_name': self.computer_name,
            'name': self.name,
            'type': self.subscription_type,
            'description': self.description,
            'enabled': self.enabled,
            'configuration_mode': self.configuration_mode,
            'delivery_mode': self.delivery_mode,
            'max_items': self.max_items,
            'max_latency_ms': _millis(self.max_latency),
            'heartbeat_interval_ms': _millis(self.heartbeat_interval),
            'read_existing_events': self.read_existing_events,
            'content_format': self.content_format,
            'transport': self.transport,
            'locale': self.locale,
            'log_file': self.log_file,
            'expires': self.expires.isoformat() if self.expires else None,
            'query': self.query,
            'source_domain_computers': self.source_domain_computers,
            'source_non_domain_dns_list': self.source_non_domain_dns_list,
            'source_non_domain_issuer_ca_thumbprint': self.source_non_domain_issuer_ca_thumbprint,
        }


def _millis(value: Optional[timedelta]) -> Optional[int]:
    if value is None:
        return None
    return int(value.total_seconds() * 1000)
