"""Pre-flight domain exports."""

from .skip_policy import evaluate_skip_reason

__all__ = ["evaluate_skip_reason"]
