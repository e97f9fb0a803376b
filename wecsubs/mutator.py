"""
Property changes on subscription documents.

``apply_changes`` takes a subscription document and a ``SubscriptionChanges``
and returns a modified copy. Changes are applied in the declaration order of
the ``SubscriptionChanges`` fields: the batching and heartbeat fields switch
``ConfigurationMode`` to ``Custom`` and are declared after
``configuration_mode`` so that an explicit mode never overrides that switch.
"""
import copy
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, fields
from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional, Sequence, Tuple, Union

from .exceptions import IdentityResolutionError
from .identity import GENERIC_READ, Resolver, build_sddl, resolve_identities
from .schema import (
    BATCHING_ORDER,
    CONFIGURATION_MODES,
    CONTENT_FORMATS,
    CUSTOM_MODE,
    DELIVERY_ORDER,
    ELEMENT_ORDER,
    NON_DOMAIN_ORDER,
    QUERY_TEMPLATE,
    TRANSPORTS,
    find_path,
    format_bool,
    local_name,
    namespace_of,
    qname,
)

logger = logging.getLogger(__name__)

TimeSpan = Union[timedelta, int]


@dataclass
class SubscriptionChanges:
    """Requested property changes; ``None`` leaves a property unchanged.

    Field order is application order.
    """
    name: Optional[str] = None
    description: Optional[str] = None
    enabled: Optional[bool] = None
    read_existing_events: Optional[bool] = None
    content_format: Optional[str] = None
    log_file: Optional[str] = None
    locale: Optional[str] = None
    configuration_mode: Optional[str] = None
    query: Optional[Union[str, Sequence[str]]] = None
    max_latency: Optional[TimeSpan] = None
    max_items: Optional[int] = None
    heartbeat_interval: Optional[TimeSpan] = None
    transport: Optional[str] = None
    expires: Optional[datetime] = None
    source_domain_computers: Optional[Sequence[str]] = None
    source_non_domain_dns_list: Optional[Sequence[str]] = None
    source_non_domain_issuer_ca_thumbprint: Optional[Sequence[str]] = None

    def items(self) -> Iterator[Tuple[str, object]]:
        """Yield ``(field, value)`` for every requested change, in order."""
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                yield f.name, value

    def is_empty(self) -> bool:
        return next(self.items(), None) is None


def ensure_child(parent: ET.Element, tag: str, order: Sequence[str] = ()) -> ET.Element:
    """Get the child ``tag`` of ``parent``, inserting it if absent.

    A new child gets the namespace of ``parent`` and is placed according to
    ``order``; tags not listed in ``order`` are appended.
    """
    existing = find_path(parent, tag)
    if existing is not None:
        return existing

    element = ET.Element(qname(tag, namespace_of(parent)))
    position = len(parent)
    if tag in order:
        rank = order.index(tag)
        for index, child in enumerate(parent):
            name = local_name(child.tag)
            if name in order and order.index(name) > rank:
                position = index
                break
    parent.insert(position, element)
    return element


def _replace_children(parent: ET.Element, tag: str, values: Sequence[str]) -> None:
    for child in list(parent):
        parent.remove(child)
    ns = namespace_of(parent)
    for value in values:
        ET.SubElement(parent, qname(tag, ns)).text = value


def _choice(value: str, choices: Sequence[str], field_name: str) -> str:
    for choice in choices:
        if choice.lower() == str(value).strip().lower():
            return choice
    raise ValueError(f"Invalid {field_name} '{value}', expected one of {', '.join(choices)}")


def to_milliseconds(value: TimeSpan, field_name: str = 'time span') -> int:
    """Encode a time span as integer milliseconds."""
    if isinstance(value, timedelta):
        millis = int(value.total_seconds() * 1000)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        millis = int(value)
    else:
        raise ValueError(f"Invalid {field_name} {value!r}")
    if millis < 0:
        raise ValueError(f"{field_name} must not be negative")
    return millis


def format_timestamp(value: datetime) -> str:
    """Encode a timestamp the way wecutil writes ``Expires``. Naive values are UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f"{value.microsecond // 1000:03d}Z"


def build_query(filters: Union[str, Sequence[str]]) -> str:
    """Build one query list from ``<Select>``/``<Suppress>`` filter strings.

    A single complete ``<QueryList>`` is used as is.
    """
    if isinstance(filters, str):
        filters = [filters]
    filters = [f.strip() for f in filters if f and f.strip()]
    if not filters:
        raise ValueError("A query needs at least one filter")
    if len(filters) == 1 and filters[0].startswith('<QueryList'):
        return filters[0]
    return QUERY_TEMPLATE.format(selects='\n'.join(f"    {f}" for f in filters))


def _no_resolver(name: str) -> str:
    raise IdentityResolutionError(f"No identity resolver available for '{name}'")


class PropertyMutator:
    """Apply ``SubscriptionChanges`` to subscription documents."""

    def __init__(self, resolver: Optional[Resolver] = None, access_right: str = GENERIC_READ):
        """Initialize the mutator.

        Args:
            resolver: Translates an account name to a SID
            access_right: Right granted to each domain source computer
        """
        self.resolver = resolver or _no_resolver
        self.access_right = access_right

    def apply(self, document: ET.Element, changes: SubscriptionChanges) -> ET.Element:
        """Return a copy of ``document`` with ``changes`` applied."""
        result = copy.deepcopy(document)
        for field_name, value in changes.items():
            logger.debug(f"Setting {field_name}")
            getattr(self, f"_set_{field_name}")(result, value)
        return result

    # Helpers

    @staticmethod
    def _element(root: ET.Element, tag: str) -> ET.Element:
        return ensure_child(root, tag, ELEMENT_ORDER)

    def _set_text(self, root: ET.Element, tag: str, value: str) -> None:
        self._element(root, tag).text = value

    def _delivery(self, root: ET.Element) -> ET.Element:
        delivery = self._element(root, 'Delivery')
        if delivery.get('Mode') is None:
            delivery.set('Mode', 'Push')
        return delivery

    def _batching(self, root: ET.Element) -> ET.Element:
        return ensure_child(self._delivery(root), 'Batching', DELIVERY_ORDER)

    def _force_custom_mode(self, root: ET.Element) -> None:
        self._set_text(root, 'ConfigurationMode', CUSTOM_MODE)

    def _non_domain_list(self, root: ET.Element, list_tag: str) -> ET.Element:
        parent = find_path(root, 'AllowedSourceNonDomainComputers')
        if parent is None:
            parent = self._element(root, 'AllowedSourceNonDomainComputers')
            ensure_child(parent, 'AllowedIssuerCAList', NON_DOMAIN_ORDER)
            ensure_child(parent, 'AllowedSubjectList', NON_DOMAIN_ORDER)
        return ensure_child(parent, list_tag, NON_DOMAIN_ORDER)

    # Scalar fields

    def _set_name(self, root, value: str) -> None:
        if not value.strip():
            raise ValueError("Subscription name must not be empty")
        self._set_text(root, 'SubscriptionId', value.strip())

    def _set_description(self, root, value: str) -> None:
        self._set_text(root, 'Description', value)

    def _set_enabled(self, root, value: bool) -> None:
        self._set_text(root, 'Enabled', format_bool(value))

    def _set_read_existing_events(self, root, value: bool) -> None:
        self._set_text(root, 'ReadExistingEvents', format_bool(value))

    def _set_content_format(self, root, value: str) -> None:
        self._set_text(root, 'ContentFormat', _choice(value, CONTENT_FORMATS, 'content format'))

    def _set_log_file(self, root, value: str) -> None:
        self._set_text(root, 'LogFile', value)

    def _set_locale(self, root, value: str) -> None:
        self._element(root, 'Locale').set('Language', value)

    def _set_configuration_mode(self, root, value: str) -> None:
        self._set_text(root, 'ConfigurationMode', _choice(value, CONFIGURATION_MODES, 'configuration mode'))

    def _set_query(self, root, value) -> None:
        element = self._element(root, 'Query')
        for child in list(element):
            element.remove(child)
        element.text = build_query(value)

    def _set_max_latency(self, root, value: TimeSpan) -> None:
        millis = to_milliseconds(value, 'max latency')
        ensure_child(self._batching(root), 'MaxLatencyTime', BATCHING_ORDER).text = str(millis)
        self._force_custom_mode(root)

    def _set_max_items(self, root, value: int) -> None:
        if isinstance(value, bool) or int(value) < 1:
            raise ValueError(f"Invalid max items {value!r}")
        ensure_child(self._batching(root), 'MaxItems', BATCHING_ORDER).text = str(int(value))
        self._force_custom_mode(root)

    def _set_heartbeat_interval(self, root, value: TimeSpan) -> None:
        millis = to_milliseconds(value, 'heartbeat interval')
        push = ensure_child(self._delivery(root), 'PushSettings', DELIVERY_ORDER)
        ensure_child(push, 'Heartbeat').set('Interval', str(millis))
        self._force_custom_mode(root)

    def _set_transport(self, root, value: str) -> None:
        self._set_text(root, 'TransportName', _choice(value, TRANSPORTS, 'transport'))

    def _set_expires(self, root, value: datetime) -> None:
        self._set_text(root, 'Expires', format_timestamp(value))

    # Access control lists

    def _set_source_domain_computers(self, root, value: Sequence[str]) -> None:
        if isinstance(value, str):
            value = [value]
        sids = resolve_identities(value, self.resolver)
        self._set_text(root, 'AllowedSourceDomainComputers', build_sddl(sids, self.access_right))

    def _set_source_non_domain_dns_list(self, root, value: Sequence[str]) -> None:
        if isinstance(value, str):
            value = [value]
        subjects = self._non_domain_list(root, 'AllowedSubjectList')
        _replace_children(subjects, 'Subject', [v.strip() for v in value if v.strip()])

    def _set_source_non_domain_issuer_ca_thumbprint(self, root, value: Sequence[str]) -> None:
        """Thumbprints are written without the spaces certificate viewers show."""
        if isinstance(value, str):
            value = [value]
        issuers = self._non_domain_list(root, 'AllowedIssuerCAList')
        thumbprints = [''.join(v.split()) for v in value if v.strip()]
        _replace_children(issuers, 'IssuerCA', thumbprints)


def apply_changes(document: ET.Element, changes: SubscriptionChanges,
                  resolver: Optional[Resolver] = None,
                  access_right: str = GENERIC_READ) -> ET.Element:
    """Return a copy of ``document`` with ``changes`` applied."""
    return PropertyMutator(resolver, access_right).apply(document, changes)
