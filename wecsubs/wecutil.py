"""
Thin wrapper around wecutil.exe.

wecutil does not report failures through a reliable exit status, so every
call inspects the captured error text as well.
"""
import logging
import re
from enum import Enum
from typing import Iterable, List, Optional

from .exceptions import SubscriptionDeleteError, WecutilError
from .remoting import CommandResult, HostExecutor

logger = logging.getLogger(__name__)

DEFAULT_BENIGN_CODES = ('0x3ae8',)

_SC_STATE = re.compile(r'STATE\s*:\s*\d+\s+(\w+)', re.IGNORECASE)


class Outcome(Enum):
    """Classification of a wecutil call."""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Wecutil:
    """Run wecutil sub-commands on one host."""

    def __init__(self, executor: HostExecutor, path: str = 'wecutil.exe',
                 service_name: str = 'wecsvc',
                 benign_codes: Optional[Iterable[str]] = None):
        self.executor = executor
        self.path = path
        self.service_name = service_name
        self.benign_codes = tuple(c.lower() for c in (benign_codes or DEFAULT_BENIGN_CODES))

    @classmethod
    def from_config(cls, executor: HostExecutor, config) -> 'Wecutil':
        return cls(
            executor,
            path=config.get('wecutil.path', 'wecutil.exe'),
            service_name=config.get('wecutil.service_name', 'wecsvc'),
            benign_codes=config.get('wecutil.benign_error_codes') or DEFAULT_BENIGN_CODES,
        )

    @property
    def computer_name(self) -> str:
        return self.executor.computer_name

    def _run(self, *args: str) -> CommandResult:
        return self.executor.run_cmd(self.path, args)

    def classify(self, result: CommandResult) -> Outcome:
        """Classify a wecutil result by its captured error text.

        A known benign error code is downgraded to a warning; any other error
        text or a non-zero exit status is an error.
        """
        if result.ok:
            return Outcome.SUCCESS
        text = f"{result.std_err}\n{result.std_out}".lower()
        if any(code in text for code in self.benign_codes):
            return Outcome.WARNING
        return Outcome.ERROR

    def service_status(self) -> str:
        """Get the state of the event collector service (e.g. ``RUNNING``)."""
        result = self.executor.run_cmd('sc.exe', ['query', self.service_name])
        match = _SC_STATE.search(result.std_out)
        if not match:
            logger.debug(f"Unexpected sc.exe output on {self.computer_name}: {result.error_text}")
            return ''
        return match.group(1).upper()

    def service_running(self) -> bool:
        return self.service_status() == 'RUNNING'

    def enumerate(self) -> List[str]:
        """List subscription names on the host (``wecutil es``)."""
        result = self._run('es')
        if not result.ok:
            raise WecutilError(
                f"Failed to enumerate subscriptions on {self.computer_name}: {result.error_text}",
                status_code=result.status_code,
                output=result.error_text
            )
        return [line.strip() for line in result.std_out.splitlines() if line.strip()]

    def get_xml(self, name: str) -> str:
        """Get one subscription as an XML document (``wecutil gs <name> /f:xml``)."""
        result = self._run('gs', name, '/f:xml')
        if not result.ok or not result.std_out.strip():
            raise WecutilError(
                f"Failed to get subscription '{name}' on {self.computer_name}: {result.error_text}",
                status_code=result.status_code,
                output=result.error_text
            )
        return result.std_out.strip()

    def delete(self, name: str) -> None:
        """Delete a subscription (``wecutil ds <name>``)."""
        result = self._run('ds', name)
        if self.classify(result) is not Outcome.SUCCESS:
            raise SubscriptionDeleteError(
                f"Failed to delete subscription '{name}' on {self.computer_name}: {result.error_text}",
                status_code=result.status_code,
                output=result.error_text
            )
        logger.debug(f"Deleted subscription '{name}' on {self.computer_name}")

    def create(self, path: str) -> CommandResult:
        """Create a subscription from an XML file on the host (``wecutil cs <path>``).

        The result is returned unclassified; see :meth:`classify`.
        """
        return self._run('cs', path)

    def runtime_status(self, name: str) -> str:
        """Get the runtime status of a subscription (``wecutil gr <name>``)."""
        result = self._run('gr', name)
        if not result.ok:
            raise WecutilError(
                f"Failed to get runtime status of '{name}' on {self.computer_name}: {result.error_text}",
                status_code=result.status_code,
                output=result.error_text
            )
        return result.std_out.strip()

    def retry(self, name: str) -> Outcome:
        """Retry an inactive subscription on all its sources (``wecutil rs <name>``)."""
        result = self._run('rs', name)
        outcome = self.classify(result)
        if outcome is Outcome.ERROR:
            raise WecutilError(
                f"Failed to retry subscription '{name}' on {self.computer_name}: {result.error_text}",
                status_code=result.status_code,
                output=result.error_text
            )
        return outcome
