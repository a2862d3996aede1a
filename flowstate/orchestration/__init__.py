"""Heal orchestration: the inspect, patch and re-inspect loop."""

from flowstate.orchestration.convergence import should_stop
from flowstate.orchestration.orchestrator import CaptureScreenshot, HealOrchestrator

__all__ = (
    "CaptureScreenshot",
    "HealOrchestrator",
    "should_stop",
)
