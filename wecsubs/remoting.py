"""
Command execution on the host that owns the subscriptions.

``LocalExecutor`` runs commands on this machine with ``subprocess``;
``WinRMExecutor`` runs them on a remote machine over WinRM with ``pywinrm``.
Both expose the same small surface used by the wecutil wrapper and the
applier.
"""
import base64
import logging
import os
import socket
import subprocess
import tempfile
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import urlparse

import requests
import winrm
from winrm.exceptions import WinRMError, WinRMOperationTimeoutError, WinRMTransportError

from .env_utils import RemotingSettings
from .exceptions import RemotingError, TempFileError

logger = logging.getLogger(__name__)

LOCAL_NAMES = ('', '.', 'localhost', '127.0.0.1', '::1')
TEMP_PREFIX = 'wecsubs_'

# Raw bytes per PowerShell call; run_ps sends the script base64 encoded on the
# command line, which must stay below the 8191 character cmd.exe limit.
UPLOAD_CHUNK_SIZE = 1500


@dataclass
class CommandResult:
    """Exit status and captured output of one command."""
    status_code: int
    std_out: str
    std_err: str

    @property
    def ok(self) -> bool:
        return self.status_code == 0 and not self.std_err.strip()

    @property
    def error_text(self) -> str:
        """Error output, falling back to standard output when stderr is empty."""
        return self.std_err.strip() or self.std_out.strip()


def ps_quote(value: str) -> str:
    """Quote ``value`` as a single-quoted PowerShell string literal."""
    return "'" + value.replace("'", "''") + "'"


def is_local_computer(computer_name: Optional[str]) -> bool:
    """Check whether ``computer_name`` refers to this machine."""
    if computer_name is None:
        return True
    name = computer_name.strip().lower()
    if name in LOCAL_NAMES:
        return True
    hostname = socket.gethostname().lower()
    return name == hostname or name.split('.')[0] == hostname.split('.')[0]


def _decode(data) -> str:
    if isinstance(data, bytes):
        return data.decode('utf-8', errors='replace')
    return data or ''


class HostExecutor:
    """Base class for running commands on a host."""

    computer_name: str = 'localhost'

    def run_cmd(self, command: str, args: Sequence[str] = ()) -> CommandResult:
        raise NotImplementedError

    def run_ps(self, script: str) -> CommandResult:
        raise NotImplementedError

    def write_temp_file(self, content: str) -> str:
        """Write ``content`` to a uniquely named file in the host's temp directory.

        Returns:
            Path of the file on the host.

        Raises:
            TempFileError: If the file could not be written.
        """
        raise NotImplementedError

    def remove_file(self, path: str) -> None:
        raise NotImplementedError

    @staticmethod
    def temp_file_name() -> str:
        return f"{TEMP_PREFIX}{uuid.uuid4().hex}.xml"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.computer_name!r})"


class LocalExecutor(HostExecutor):
    """Run commands on the local machine."""

    def __init__(self, timeout: Optional[int] = None):
        self.timeout = timeout
        self.computer_name = socket.gethostname()

    def _run(self, argv: List[str]) -> CommandResult:
        logger.debug(f"Running {argv[0]} locally")
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                errors='replace',
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise RemotingError(f"Command {argv[0]} timed out after {self.timeout} seconds")
        except OSError as e:
            raise RemotingError(f"Could not run {argv[0]}: {e}") from e
        return CommandResult(result.returncode, result.stdout or '', result.stderr or '')

    def run_cmd(self, command: str, args: Sequence[str] = ()) -> CommandResult:
        return self._run([command, *args])

    def run_ps(self, script: str) -> CommandResult:
        return self._run(['powershell.exe', '-NoProfile', '-NonInteractive', '-Command', script])

    def write_temp_file(self, content: str) -> str:
        path = os.path.join(tempfile.gettempdir(), self.temp_file_name())
        try:
            with open(path, 'x', encoding='utf-8') as f:
                f.write(content)
        except OSError as e:
            raise TempFileError(f"Could not write temporary file {path}: {e}") from e
        return path

    def remove_file(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


class WinRMExecutor(HostExecutor):
    """Run commands on a remote machine through a ``winrm.Session``."""

    def __init__(self, computer_name: Optional[str] = None,
                 settings: Optional[RemotingSettings] = None,
                 session: Optional[winrm.Session] = None):
        """Initialize the executor.

        Args:
            computer_name: Remote host name; ignored when ``session`` is given
            settings: Connection settings and optional credential
            session: An established session to reuse
        """
        if session is None and not computer_name:
            raise ValueError("Either a computer name or a WinRM session is required")

        self.settings = settings or RemotingSettings()
        if session is not None:
            self.session = session
            self.computer_name = urlparse(getattr(session, 'url', '')).hostname or computer_name or ''
        else:
            self.computer_name = computer_name
            self.session = self._open_session(computer_name)

    def _open_session(self, computer_name: str) -> winrm.Session:
        settings = self.settings
        kwargs = {
            'transport': settings.transport,
            'server_cert_validation': settings.server_cert_validation,
        }
        auth = (settings.username or '', settings.password or '')
        logger.debug(f"Opening WinRM session to {computer_name} using {settings.transport}")
        return winrm.Session(settings.endpoint(computer_name), auth=auth, **kwargs)

    def _call(self, func, *args) -> CommandResult:
        try:
            response = func(*args)
        except (WinRMError, WinRMTransportError, WinRMOperationTimeoutError,
                requests.exceptions.RequestException) as e:
            raise RemotingError(f"WinRM call to {self.computer_name} failed: {e}") from e
        return CommandResult(response.status_code, _decode(response.std_out), _decode(response.std_err))

    def run_cmd(self, command: str, args: Sequence[str] = ()) -> CommandResult:
        logger.debug(f"Running {command} on {self.computer_name}")
        return self._call(self.session.run_cmd, command, list(args))

    def run_ps(self, script: str) -> CommandResult:
        return self._call(self.session.run_ps, script)

    def write_temp_file(self, content: str) -> str:
        data = content.encode('utf-8')
        chunks = [data[i:i + UPLOAD_CHUNK_SIZE] for i in range(0, len(data), UPLOAD_CHUNK_SIZE)] or [b'']
        name = self.temp_file_name()

        first = base64.b64encode(chunks[0]).decode('ascii')
        script = (
            f"$p = Join-Path ([IO.Path]::GetTempPath()) {ps_quote(name)}; "
            f"[IO.File]::WriteAllBytes($p, [Convert]::FromBase64String('{first}')); "
            "Write-Output $p"
        )
        try:
            result = self.run_ps(script)
        except RemotingError as e:
            raise TempFileError(f"Could not write temporary file on {self.computer_name}: {e}") from e
        if result.status_code != 0 or not result.std_out.strip():
            raise TempFileError(
                f"Could not write temporary file on {self.computer_name}: {result.error_text}"
            )
        path = result.std_out.strip().splitlines()[-1].strip()

        for chunk in chunks[1:]:
            encoded = base64.b64encode(chunk).decode('ascii')
            script = (
                f"$b = [Convert]::FromBase64String('{encoded}'); "
                f"$s = [IO.File]::Open({ps_quote(path)}, 'Append'); "
                "try { $s.Write($b, 0, $b.Length) } finally { $s.Close() }"
            )
            try:
                result = self.run_ps(script)
            except RemotingError as e:
                raise TempFileError(f"Could not write temporary file {path}: {e}") from e
            if result.status_code != 0:
                raise TempFileError(f"Could not write temporary file {path}: {result.error_text}")

        logger.debug(f"Wrote {len(data)} bytes to {path} on {self.computer_name}")
        return path

    def remove_file(self, path: str) -> None:
        try:
            result = self.run_ps(f"Remove-Item -LiteralPath {ps_quote(path)} -Force -ErrorAction SilentlyContinue")
        except RemotingError as e:
            logger.warning(f"Could not remove {path} on {self.computer_name}: {e}")
            return
        if result.status_code != 0:
            logger.warning(f"Could not remove {path} on {self.computer_name}: {result.error_text}")


def create_executor(computer_name: Optional[str] = None,
                    session: Optional[winrm.Session] = None,
                    settings: Optional[RemotingSettings] = None) -> HostExecutor:
    """Pick the executor for a target.

    A session wins over a computer name; a computer name that refers to this
    machine runs locally unless explicit credentials are given.
    """
    if session is not None:
        return WinRMExecutor(computer_name, settings=settings, session=session)
    if is_local_computer(computer_name) and not (settings and settings.has_credential):
        return LocalExecutor()
    return WinRMExecutor(computer_name or 'localhost', settings=settings)
