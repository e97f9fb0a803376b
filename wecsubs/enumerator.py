"""
Subscription enumeration.

Lists subscription names with ``wecutil es``, matches them against the
requested names and reads each match with ``wecutil gs``.
"""
import fnmatch
import logging
import xml.etree.ElementTree as ET
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from .exceptions import ServiceNotRunningError, WecutilError
from .subscription import Subscription
from .wecutil import Wecutil

logger = logging.getLogger(__name__)

WILDCARD_CHARS = '*?['


def has_wildcard(pattern: str) -> bool:
    return any(c in pattern for c in WILDCARD_CHARS)


def match_names(available: Iterable[str], patterns: Sequence[str]) -> List[str]:
    """Get the names in ``available`` matching any of ``patterns``.

    Matching is case-insensitive, like subscription names on Windows. The
    order of ``available`` is kept and every name appears once.
    """
    lowered = [p.lower() for p in patterns]
    return [
        name for name in available
        if any(fnmatch.fnmatchcase(name.lower(), p) for p in lowered)
    ]


class SubscriptionEnumerator:
    """Read subscriptions from one host."""

    def __init__(self, wecutil: Wecutil):
        self.wecutil = wecutil

    @property
    def computer_name(self) -> str:
        return self.wecutil.computer_name

    def ensure_service_running(self) -> None:
        """Raise ServiceNotRunningError unless wecsvc is running on the host."""
        status = self.wecutil.service_status()
        if status != 'RUNNING':
            raise ServiceNotRunningError(self.computer_name, status or 'unknown')

    def get_subscriptions(self, names: Union[str, Sequence[str]] = ('*',)) -> Iterator[Subscription]:
        """Yield the subscriptions matching ``names``.

        Args:
            names: Subscription names or wildcard patterns

        Raises:
            ServiceNotRunningError: If the event collector service is not running
            WecutilError: If the subscription names could not be listed
        """
        if isinstance(names, str):
            names = [names]
        names = list(names) or ['*']

        self.ensure_service_running()
        available = self.wecutil.enumerate()
        logger.debug(f"Found {len(available)} subscriptions on {self.computer_name}")

        for pattern in names:
            if not has_wildcard(pattern) and not match_names(available, [pattern]):
                logger.warning(f"Subscription '{pattern}' not found on {self.computer_name}")

        for name in match_names(available, names):
            subscription = self.get_subscription(name)
            if subscription is not None:
                yield subscription

    def get_subscription(self, name: str) -> Optional[Subscription]:
        """Read one subscription by exact name; a failure is logged and gives ``None``."""
        try:
            xml_text = self.wecutil.get_xml(name)
        except WecutilError as e:
            logger.warning(f"Subscription '{name}' could not be read on {self.computer_name}: {e}")
            return None
        try:
            return Subscription.from_xml(xml_text, self.computer_name, self.wecutil.executor)
        except ET.ParseError as e:
            logger.warning(f"Subscription '{name}' on {self.computer_name} is not valid XML: {e}")
            return None
