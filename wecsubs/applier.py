"""
Replace a live subscription with a modified document.

wecutil has no update command: the document is written to a temporary file
on the host, the subscription is deleted by its original name and created
again from the file. The sequence is not atomic; when creation fails after
the delete the host has no subscription of that name, and the temporary file
is kept so the document can be recovered with ``wecutil cs``.
"""
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import List, Optional

from .exceptions import RemotingError, SubscriptionCreateError, TempFileError
from .schema import find_path
from .subscription import Subscription, serialize_document
from .wecutil import Outcome, Wecutil

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Result of replacing one subscription."""
    computer_name: str
    original_name: str
    name: str
    outcome: Outcome
    messages: List[str] = field(default_factory=list)
    temp_path: Optional[str] = None
    subscription: Optional[Subscription] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is not Outcome.ERROR


class SubscriptionApplier:
    """Delete-then-recreate a subscription from a finalized document."""

    def __init__(self, wecutil: Wecutil):
        self.wecutil = wecutil
        self.executor = wecutil.executor

    def apply(self, original_name: str, document: ET.Element) -> ApplyResult:
        """Replace the subscription ``original_name`` with ``document``.

        Args:
            original_name: Name of the subscription on the host
            document: The complete new subscription document

        Returns:
            ApplyResult with outcome SUCCESS or WARNING

        Raises:
            TempFileError: If the document could not be written; nothing was deleted
            SubscriptionDeleteError: If the existing subscription could not be deleted
            SubscriptionCreateError: If the new subscription could not be created
        """
        computer_name = self.executor.computer_name
        new_name = _subscription_id(document) or original_name
        content = serialize_document(document)

        try:
            temp_path = self.executor.write_temp_file(content)
        except TempFileError:
            logger.error(f"Could not stage subscription '{original_name}' on {computer_name}")
            raise
        logger.debug(f"Staged subscription '{new_name}' in {temp_path} on {computer_name}")

        try:
            self.wecutil.delete(original_name)
        except Exception:
            self._discard(temp_path)
            raise

        try:
            result = self.wecutil.create(temp_path)
        except RemotingError as e:
            logger.error(
                f"Failed to recreate subscription '{new_name}' on {computer_name}: {e}. "
                f"The subscription document was kept in {temp_path}"
            )
            raise SubscriptionCreateError(
                f"Failed to recreate subscription '{new_name}' on {computer_name}: {e}",
                temp_path=temp_path
            ) from e

        outcome = self.wecutil.classify(result)
        text = result.error_text

        if outcome is Outcome.ERROR:
            logger.error(
                f"Failed to recreate subscription '{new_name}' on {computer_name}: {text}. "
                f"The subscription document was kept in {temp_path}"
            )
            raise SubscriptionCreateError(
                f"Failed to recreate subscription '{new_name}' on {computer_name}: {text}",
                temp_path=temp_path,
                status_code=result.status_code,
                output=text
            )

        messages = []
        if outcome is Outcome.WARNING:
            logger.warning(f"Subscription '{new_name}' on {computer_name} was saved with a warning: {text}")
            messages.append(text)
        else:
            logger.info(f"Updated subscription '{new_name}' on {computer_name}")

        self._discard(temp_path)
        return ApplyResult(computer_name, original_name, new_name, outcome, messages)

    def _discard(self, temp_path: str) -> None:
        try:
            self.executor.remove_file(temp_path)
        except RemotingError as e:
            logger.warning(f"Could not remove {temp_path} on {self.executor.computer_name}: {e}")


def _subscription_id(document: ET.Element) -> Optional[str]:
    element = find_path(document, 'SubscriptionId')
    if element is None:
        return None
    return (element.text or '').strip() or None
