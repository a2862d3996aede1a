"""
Stop decision for the heal loop after a successful patch.
"""

from __future__ import annotations

__all__ = ("should_stop",)


def should_stop(
    iteration: int,
    max_iterations: int,
    *,
    verify: bool,
    can_recapture: bool,
) -> tuple[bool, str]:
    """
    Decide whether to leave the loop once an iteration produced a patch.

    Re-inspection needs a fresh screenshot of the patched UI; without a way
    to capture one the loop ends after a single patch even when ``verify``
    is requested.

    Returns (should_stop, reason).
    """
    if not verify:
        return True, "verification disabled"
    if not can_recapture:
        return True, "verification requires an external re-screenshot of the updated UI"
    if iteration >= max_iterations:
        return True, f"max iterations reached ({max_iterations})"
    return False, ""
