"""TestFlight availability monitor with Telegram notifications."""

__version__ = "0.1.0"
