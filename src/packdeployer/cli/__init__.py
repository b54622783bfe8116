"""
pack-deployer command line interface.
"""

from .app import app, cli_main

__all__ = ["app", "cli_main"]
