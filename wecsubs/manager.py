"""
Subscription management on one host.

``SubscriptionManager`` ties the executor, the wecutil wrapper, the
enumerator, the property mutator and the applier together.
"""
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import winrm

from .applier import ApplyResult, SubscriptionApplier
from .config import Config, get_config
from .enumerator import SubscriptionEnumerator
from .env_utils import RemotingSettings
from .exceptions import SubscriptionNotFoundError
from .identity import GENERIC_READ, HostIdentityResolver, Resolver
from .mutator import PropertyMutator, SubscriptionChanges
from .remoting import HostExecutor, create_executor
from .subscription import Subscription
from .wecutil import Outcome, Wecutil

logger = logging.getLogger(__name__)


class SubscriptionManager:
    """Read and change the subscriptions of one host."""

    def __init__(self, computer_name: Optional[str] = None,
                 session: Optional[winrm.Session] = None,
                 settings: Optional[RemotingSettings] = None,
                 config: Optional[Config] = None,
                 executor: Optional[HostExecutor] = None,
                 resolver: Optional[Resolver] = None):
        """Initialize the manager.

        Args:
            computer_name: Target host; the local machine when omitted
            session: Established WinRM session to use instead of ``computer_name``
            settings: WinRM connection settings and credential
            config: Configuration; the global configuration when omitted
            executor: Ready executor, bypassing ``computer_name``/``session``
            resolver: Account-name-to-SID translation; resolved on the host when omitted
        """
        self.config = config or get_config()
        self.executor = executor or create_executor(computer_name, session=session, settings=settings)
        self.wecutil = Wecutil.from_config(self.executor, self.config)
        self.enumerator = SubscriptionEnumerator(self.wecutil)
        self.applier = SubscriptionApplier(self.wecutil)
        self.mutator = PropertyMutator(
            resolver or HostIdentityResolver(self.executor),
            self.config.get('security.access_right', GENERIC_READ)
        )

    @property
    def computer_name(self) -> str:
        return self.executor.computer_name

    def get(self, names: Union[str, Sequence[str]] = ('*',)) -> List[Subscription]:
        """Get the subscriptions matching ``names`` (wildcards allowed)."""
        return list(self.enumerator.get_subscriptions(names))

    def fetch(self, name: str) -> Subscription:
        """Read one subscription by exact name, fresh from the host.

        Raises:
            ServiceNotRunningError: If the event collector service is not running
            SubscriptionNotFoundError: If the subscription could not be read
        """
        self.enumerator.ensure_service_running()
        subscription = self.enumerator.get_subscription(name)
        if subscription is None:
            raise SubscriptionNotFoundError(name, self.computer_name)
        return subscription

    def set(self, name: Union[str, Subscription], changes: SubscriptionChanges,
            pass_thru: bool = False) -> Optional[ApplyResult]:
        """Apply ``changes`` to a subscription.

        The subscription is read again from the host before the changes are
        applied, so a ``Subscription`` argument only provides the name.

        Args:
            name: Subscription name or a previously read subscription
            changes: Requested property changes
            pass_thru: Read the subscription back after the update

        Returns:
            ApplyResult, or None when ``changes`` is empty
        """
        if isinstance(name, Subscription):
            name = name.name
        if changes.is_empty():
            logger.info(f"No changes requested for subscription '{name}'")
            return None

        current = self.fetch(name)
        document = self.mutator.apply(current.document, changes)
        result = self.applier.apply(current.name, document)

        if pass_thru:
            result.subscription = self.enumerator.get_subscription(result.name)
        return result

    def enable(self, name: Union[str, Subscription], pass_thru: bool = False) -> Optional[ApplyResult]:
        return self.set(name, SubscriptionChanges(enabled=True), pass_thru=pass_thru)

    def disable(self, name: Union[str, Subscription], pass_thru: bool = False) -> Optional[ApplyResult]:
        return self.set(name, SubscriptionChanges(enabled=False), pass_thru=pass_thru)

    def remove(self, name: Union[str, Subscription]) -> None:
        """Delete a subscription from the host."""
        if isinstance(name, Subscription):
            name = name.name
        current = self.fetch(name)
        self.wecutil.delete(current.name)
        logger.info(f"Removed subscription '{current.name}' from {self.computer_name}")

    def export(self, name: Union[str, Subscription], path: Union[str, Path]) -> Path:
        """Write a subscription document to a local file usable with ``wecutil cs``."""
        if isinstance(name, Subscription):
            name = name.name
        subscription = self.fetch(name)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(subscription.to_xml(), encoding='utf-8')
        logger.info(f"Exported subscription '{subscription.name}' to {path}")
        return path

    def runtime_status(self, name: str) -> str:
        """Get the runtime status text of a subscription."""
        self.enumerator.ensure_service_running()
        return self.wecutil.runtime_status(name)

    def retry(self, name: str) -> Outcome:
        """Retry a subscription whose sources are inactive."""
        self.enumerator.ensure_service_running()
        outcome = self.wecutil.retry(name)
        if outcome is Outcome.WARNING:
            logger.warning(f"Retry of subscription '{name}' on {self.computer_name} finished with a warning")
        return outcome
