"""
Document numbering: template rendering and counter allocation.
"""

from invoicebook.numbering.allocator import (
    MAX_RECONCILE_ATTEMPTS,
    AllocatedNumber,
    allocate_document_number,
    counters_for,
)
from invoicebook.numbering.template import (
    TEMPLATE_VARIABLES,
    TemplateValidationResult,
    build_variables,
    file_name_errors,
    format_document_number,
    preview_document_number,
    validate_template,
)

__all__ = [
    "MAX_RECONCILE_ATTEMPTS",
    "TEMPLATE_VARIABLES",
    "AllocatedNumber",
    "TemplateValidationResult",
    "allocate_document_number",
    "build_variables",
    "counters_for",
    "file_name_errors",
    "format_document_number",
    "preview_document_number",
    "validate_template",
]
