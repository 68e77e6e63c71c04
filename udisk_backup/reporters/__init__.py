"""Reporters: run reports and event publishing."""

from .notifications import NotificationSink, InMemoryBroker, LoggingSink, NullSink, Subscription
from .text_report import render_run_report

__all__ = ["NotificationSink", "InMemoryBroker", "LoggingSink", "NullSink", "Subscription", "render_run_report"]
