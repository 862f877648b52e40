from __future__ import annotations


class InvalidArgument(ValueError):
    """Raised when integration inputs are rejected before any computation."""


class IntegrationCancelled(RuntimeError):
    """Raised when a cooperative cancellation check asks the integrator to stop."""

    def __init__(self, completed_steps: int):
        super().__init__(f"Integration cancelled after {completed_steps} steps.")
        self.completed_steps = completed_steps
