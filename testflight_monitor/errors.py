"""Exceptions raised across the monitor."""


class MonitorError(Exception):
    """Base class for all monitor errors."""


class FetchError(MonitorError):
    """A target page could not be retrieved (network, timeout, non-2xx)."""


class ParseError(MonitorError):
    """A page was retrieved but is not usable as an HTML document."""


class NotificationError(MonitorError):
    """A Telegram notification could not be delivered."""


class ConfigurationError(MonitorError):
    """Configuration is invalid or incomplete."""
