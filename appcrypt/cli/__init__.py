"""
appcrypt command-line interface.

This package provides the CLI for scanning local bundles and inspecting
apps on a jailbroken device.
"""

from appcrypt.cli.main import cli

__all__ = ["cli"]
