"""
CLI commands for pack-deployer.
"""

from .deploy import apply, destroy, plan

__all__ = ["apply", "destroy", "plan"]
