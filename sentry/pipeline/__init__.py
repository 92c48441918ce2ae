"""
Audit pipeline orchestration.
"""

from sentry.pipeline.orchestrator import AuditPipeline, AuditTranscript, reduce_verdict

__all__ = ["AuditPipeline", "AuditTranscript", "reduce_verdict"]
