"""
Windows Event Collector subscription schema.

Element names, ordering and encodings used by ``wecutil gs /f:xml`` and
accepted by ``wecutil cs``.
"""
import xml.etree.ElementTree as ET

SUBSCRIPTION_NS = 'http://schemas.microsoft.com/2006/03/windows/events/subscription'
NS = {'s': SUBSCRIPTION_NS}

# Serialize subscription documents with the schema namespace as the default
ET.register_namespace('', SUBSCRIPTION_NS)

# Child order of <Subscription> as written by wecutil
ELEMENT_ORDER = [
    'SubscriptionId',
    'SubscriptionType',
    'Description',
    'Enabled',
    'Uri',
    'ConfigurationMode',
    'Delivery',
    'Expires',
    'Query',
    'ReadExistingEvents',
    'TransportName',
    'TransportPort',
    'ContentFormat',
    'Locale',
    'LogFile',
    'PublisherName',
    'AllowedSourceNonDomainComputers',
    'AllowedSourceDomainComputers',
    'EventSources',
    'CredentialsType',
    'CommonUserName',
    'CommonPassword',
    'HostName',
]

DELIVERY_ORDER = ['Batching', 'PushSettings']
BATCHING_ORDER = ['MaxItems', 'MaxLatencyTime']
NON_DOMAIN_ORDER = ['AllowedIssuerCAList', 'AllowedSubjectList', 'DeniedSubjectList']

CONTENT_FORMATS = ('Events', 'RenderedText')
TRANSPORTS = ('HTTP', 'HTTPS')
CONFIGURATION_MODES = ('Normal', 'Custom', 'MinLatency', 'MinBandwidth')
CUSTOM_MODE = 'Custom'

# Owner NETWORK SERVICE, group BUILTIN\Administrators, protected DACL
SDDL_PREFIX = 'O:NSG:BAD:P'
SDDL_SUFFIX = 'S:'

QUERY_TEMPLATE = """<QueryList>
  <Query Id="0">
{selects}
  </Query>
</QueryList>"""


def qname(tag: str, ns: str = SUBSCRIPTION_NS) -> str:
    """Qualify ``tag`` with ``ns`` (the subscription namespace by default)."""
    return f"{{{ns}}}{tag}" if ns else tag


def namespace_of(element) -> str:
    """Get the namespace URI of an element, or an empty string."""
    tag = element.tag
    return tag[1:].split('}', 1)[0] if tag.startswith('{') else ''


def find_path(root, *parts):
    """Find a descendant of ``root`` by local names, in the namespace of ``root``."""
    ns = namespace_of(root)
    return root.find('/'.join(qname(p, ns) for p in parts))


def local_name(tag: str) -> str:
    """Strip the namespace from an element tag."""
    return tag.rsplit('}', 1)[-1]


def format_bool(value: bool) -> str:
    return 'true' if value else 'false'


def parse_bool(text) -> bool:
    return (text or '').strip().lower() == 'true'


def find_all(parent, tag: str) -> list:
    """Get the children of ``parent`` with local name ``tag``."""
    return [child for child in parent if local_name(child.tag) == tag]
