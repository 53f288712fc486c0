"""
ExeWatch - Error types.

Only conditions that must stop an invocation get an exception here;
recoverable per-file problems are logged where they happen.
"""


class ExeWatchError(Exception):
    """Base class for ExeWatch failures."""


class PolicyNotConfiguredError(ExeWatchError):
    """No whitelist policy is available, so there is nothing to monitor."""
