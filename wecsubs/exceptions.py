"""
Exceptions raised by wecsubs operations.
"""
from typing import Optional


class WecSubscriptionError(Exception):
    """Base exception for subscription operations."""
    pass


class ServiceNotRunningError(WecSubscriptionError):
    """The Windows Event Collector service is not running on the target host."""

    def __init__(self, computer_name: str, status: str = ''):
        self.computer_name = computer_name
        self.status = status
        message = f"Windows Event Collector service is not running on {computer_name}"
        if status:
            message += f" (status: {status})"
        super().__init__(message)


class SubscriptionNotFoundError(WecSubscriptionError):
    """No subscription with the requested name exists on the host."""

    def __init__(self, name: str, computer_name: str):
        self.name = name
        self.computer_name = computer_name
        super().__init__(f"Subscription '{name}' not found on {computer_name}")


class WecutilError(WecSubscriptionError):
    """wecutil.exe reported a failure."""

    def __init__(self, message: str, status_code: Optional[int] = None, output: str = ''):
        self.status_code = status_code
        self.output = output
        super().__init__(message)


class TempFileError(WecSubscriptionError):
    """The temporary subscription file could not be written on the host."""
    pass


class SubscriptionDeleteError(WecutilError):
    """Deleting a subscription before recreating it failed."""
    pass


class SubscriptionCreateError(WecutilError):
    """Recreating a subscription from its temporary file failed.

    The temporary file is left on the host; its path is kept in ``temp_path``.
    """

    def __init__(self, message: str, temp_path: str, status_code: Optional[int] = None,
                 output: str = ''):
        self.temp_path = temp_path
        super().__init__(message, status_code=status_code, output=output)


class IdentityResolutionError(WecSubscriptionError):
    """An account name could not be translated to a security identifier."""
    pass


class RemotingError(WecSubscriptionError):
    """A command could not be delivered to the target host."""
    pass
