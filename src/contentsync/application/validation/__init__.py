"""Import source validation."""

from contentsync.application.validation.gate import ValidationGate

__all__ = ["ValidationGate"]
