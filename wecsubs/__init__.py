"""
wecsubs Package

Tools for enumerating and modifying Windows Event Collector (WEC) subscriptions
on local and remote hosts through wecutil.exe.
"""

__version__ = '0.1.0'

from .exceptions import (
    WecSubscriptionError,
    ServiceNotRunningError,
    SubscriptionNotFoundError,
    WecutilError,
    TempFileError,
    SubscriptionDeleteError,
    SubscriptionCreateError,
    IdentityResolutionError,
    RemotingError,
)
from .subscription import Subscription
from .mutator import SubscriptionChanges, apply_changes
from .manager import SubscriptionManager

__all__ = [
    'WecSubscriptionError',
    'ServiceNotRunningError',
    'SubscriptionNotFoundError',
    'WecutilError',
    'TempFileError',
    'SubscriptionDeleteError',
    'SubscriptionCreateError',
    'IdentityResolutionError',
    'RemotingError',
    'Subscription',
    'SubscriptionChanges',
    'apply_changes',
    'SubscriptionManager',
]
