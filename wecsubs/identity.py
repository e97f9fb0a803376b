"""
Security identifiers and the access descriptor of domain source computers.
"""
import logging
import re
from typing import Callable, Iterable, List

from .exceptions import IdentityResolutionError, RemotingError
from .remoting import HostExecutor, ps_quote
from .schema import SDDL_PREFIX, SDDL_SUFFIX

logger = logging.getLogger(__name__)

SID_PATTERN = re.compile(r'^S-1-\d+(-\d+)+$', re.IGNORECASE)
_ACE_PATTERN = re.compile(r'\(A;[^;()]*;[^;()]*;[^;()]*;[^;()]*;([^;()]+)\)')

GENERIC_READ = 'GR'

Resolver = Callable[[str], str]


def is_sid(value: str) -> bool:
    """Check whether ``value`` is written as a security identifier."""
    return bool(SID_PATTERN.match(value.strip()))


def build_sddl(sids: Iterable[str], access_right: str = GENERIC_READ) -> str:
    """Build the access descriptor granting ``access_right`` to each SID in order."""
    aces = ''.join(f"(A;;{access_right};;;{sid})" for sid in sids)
    return f"{SDDL_PREFIX}{aces}{SDDL_SUFFIX}"


def parse_sddl(sddl: str) -> List[str]:
    """Get the trustees of the allow entries of an access descriptor."""
    if not sddl:
        return []
    return _ACE_PATTERN.findall(sddl)


class HostIdentityResolver:
    """Translate account names to SIDs on the target host."""

    def __init__(self, executor: HostExecutor):
        self.executor = executor

    def __call__(self, name: str) -> str:
        script = (
            f"(New-Object System.Security.Principal.NTAccount({ps_quote(name)}))"
            ".Translate([System.Security.Principal.SecurityIdentifier]).Value"
        )
        try:
            result = self.executor.run_ps(script)
        except RemotingError as e:
            raise IdentityResolutionError(f"Could not resolve '{name}': {e}") from e

        sid = result.std_out.strip()
        if result.status_code != 0 or not is_sid(sid):
            raise IdentityResolutionError(
                f"Could not resolve '{name}' on {self.executor.computer_name}: {result.error_text}"
            )
        return sid


def resolve_identities(entries: Iterable[str], resolver: Resolver) -> List[str]:
    """Resolve each entry to a SID, in input order.

    Entries already written as SIDs are passed through. An entry that cannot
    be resolved is logged and left out.
    """
    sids = []
    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        if is_sid(entry):
            sids.append(entry.upper())
            continue
        try:
            sids.append(resolver(entry))
        except IdentityResolutionError as e:
            logger.warning(f"Skipping source computer '{entry}': {e}")
    return sids
