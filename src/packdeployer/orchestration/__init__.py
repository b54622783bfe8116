"""
Orchestration layer: drives one plan/apply/destroy invocation end to end.
"""

from .deploy_orchestrator import DeployOrchestrator, PipelineOutcome

__all__ = ["DeployOrchestrator", "PipelineOutcome"]
