"""
Validation Package
"""

from invoicebook.validation.validator import (
    DocumentValidator,
    SettingsValidator,
    ValidationFailedError,
    ensure_valid,
    issues_from_pydantic,
    parse_request,
)

__all__ = [
    "DocumentValidator",
    "SettingsValidator",
    "ValidationFailedError",
    "ensure_valid",
    "issues_from_pydantic",
    "parse_request",
]
