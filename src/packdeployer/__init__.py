"""
packdeployer - plans deployment packs and dispatches them to provider delegates.
"""

__version__ = "0.4.0"
