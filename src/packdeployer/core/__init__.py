"""
Core building blocks shared across packdeployer layers: structured errors
and bounded retry for remote operations.
"""
