"""
Configuration layer: layered merge of built-in defaults, config file,
environment variables and CLI flags into a DeployerConfig.
"""

from .loader import Action, ConfigLoader, DeployerConfig, OutputFormat

__all__ = ["Action", "ConfigLoader", "DeployerConfig", "OutputFormat"]
