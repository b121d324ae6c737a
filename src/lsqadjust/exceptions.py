from __future__ import annotations


class LsqAdjustError(Exception):
    """Base exception for lsqadjust."""


class DimensionMismatchError(LsqAdjustError, ValueError):
    """Invalid shape or dimension mismatch between arguments."""


class InvalidWeightsError(LsqAdjustError, ValueError):
    """Invalid weights: negative, NaN/inf, or incompatible mode."""


class SingularMatrixError(LsqAdjustError, RuntimeError):
    """Matrix is singular or could not be factored by the backend."""


class IllConditionedWarning(RuntimeWarning):
    """Condition number of a solved system exceeds the configured threshold."""
