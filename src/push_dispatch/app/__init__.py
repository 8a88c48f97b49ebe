"""Command-line application for push-dispatch."""

from __future__ import annotations

from push_dispatch.app.cli import cli
from push_dispatch.app.runner import ApplicationRunner

__all__ = [
    "ApplicationRunner",
    "cli",
]
