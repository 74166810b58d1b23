# src/regionkrige/exceptions.py
# SPDX-License-Identifier: MIT
"""
Error kinds raised by regionkrige.

Every error derives from :class:`RegionKrigeError`. The concrete kinds also
derive from the closest built-in exception so callers that only catch
``ValueError`` / ``LookupError`` / ``RuntimeError`` keep working.
"""

from __future__ import annotations


class RegionKrigeError(Exception):
    """Base class for all regionkrige errors."""


class ValidationError(RegionKrigeError, ValueError):
    """Malformed or out-of-range caller-supplied parameter."""


class NotFoundError(RegionKrigeError, LookupError):
    """A referenced station identifier is not in the catalog."""


class ConfigurationError(RegionKrigeError, ValueError):
    """Malformed model specification or unresolved predictor."""


class ModelFitError(RegionKrigeError, RuntimeError):
    """Numerically degenerate fit or insufficient observations."""


class InvariantViolation(RegionKrigeError, RuntimeError):
    """Internal consistency failure between pipeline stages (always a bug)."""


__all__ = [
    "RegionKrigeError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "ModelFitError",
    "InvariantViolation",
]
