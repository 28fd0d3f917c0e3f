"""
Document Number Templates

A template is a string with placeholders:

    {PREFIX}       document prefix from settings ("INV", "OFF")
    {YEAR}         full year (2026)
    {YY}           two-digit year (26)
    {MONTH}        month, 1-12
    {DAY}          day of month, 1-31
    {NUMBER}       lifetime counter of the document type
    {NUMBER_YEAR}  counter of the document type within the year

Any placeholder accepts a zero-padding width: {NUMBER:4} -> 0042.

Unknown placeholders are rejected by validate_template (settings updates
call it) and left verbatim by format_document_number.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import Field

from invoicebook.models.base import CamelModel, utcnow


TEMPLATE_VARIABLES = ("PREFIX", "YEAR", "YY", "MONTH", "DAY", "NUMBER", "NUMBER_YEAR")
COUNTER_VARIABLES = ("NUMBER", "NUMBER_YEAR")

TEMPLATE_PATTERN = re.compile(r"\{(\w+)(?::(\d+))?\}")

MIN_PADDING = 1
MAX_PADDING = 10

# The rendered number becomes a file name. Directory scans skip hidden files.
FORBIDDEN_CHARACTERS = ("/", "\\")
HIDDEN_FILE_MARKER = "."


class TemplateValidationResult(CamelModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    variables: list[str] = Field(default_factory=list)


def build_variables(
    prefix: str,
    number: int,
    number_year: int,
    when: Optional[datetime] = None,
) -> dict[str, object]:
    when = when or utcnow()
    return {
        "PREFIX": prefix,
        "YEAR": when.year,
        "YY": when.year % 100,
        "MONTH": when.month,
        "DAY": when.day,
        "NUMBER": number,
        "NUMBER_YEAR": number_year,
    }


def format_document_number(template: str, variables: dict[str, object]) -> str:
    """
    Substitute placeholders in `template`.

    Example:
        >>> format_document_number("{YY}.{NUMBER_YEAR:3}", {"YY": 26, "NUMBER_YEAR": 5})
        '26.005'
    """
    def substitute(match: re.Match) -> str:
        name, padding = match.group(1), match.group(2)
        if name not in variables:
            return match.group(0)
        value = str(variables[name])
        if padding:
            return value.zfill(int(padding))
        return value

    return TEMPLATE_PATTERN.sub(substitute, template)


def validate_template(template: Optional[str]) -> TemplateValidationResult:
    errors: list[str] = []
    warnings: list[str] = []
    variables: list[str] = []

    if not template or not template.strip():
        return TemplateValidationResult(valid=False, errors=["Template cannot be empty"])

    matches = list(TEMPLATE_PATTERN.finditer(template))
    if not matches:
        return TemplateValidationResult(
            valid=False,
            errors=["Template must contain at least one variable like {NUMBER} or {YEAR}"],
        )

    for match in matches:
        name, padding = match.group(1), match.group(2)
        variables.append(name)

        if name not in TEMPLATE_VARIABLES:
            errors.append(
                f"Unknown variable: {{{name}}}. Valid variables: {', '.join(TEMPLATE_VARIABLES)}"
            )

        if padding is not None and not MIN_PADDING <= int(padding) <= MAX_PADDING:
            errors.append(
                f"Invalid padding for {{{name}:{padding}}}. "
                f"Padding must be between {MIN_PADDING} and {MAX_PADDING}"
            )

    literal = TEMPLATE_PATTERN.sub("", template)
    for character in FORBIDDEN_CHARACTERS:
        if character in literal:
            errors.append(f"Template cannot contain '{character}'")
    if template.startswith(HIDDEN_FILE_MARKER):
        errors.append(f"Template cannot start with '{HIDDEN_FILE_MARKER}'")

    if not any(name in COUNTER_VARIABLES for name in variables):
        warnings.append(
            "Template does not include {NUMBER} or {NUMBER_YEAR}. "
            "Document numbers may not be unique."
        )

    return TemplateValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        variables=variables,
    )


def file_name_errors(document_number: str) -> list[str]:
    """Reasons a rendered number cannot be stored as `{number}.json`."""
    errors = []
    if not document_number.strip():
        errors.append("Document number cannot be empty")
    elif document_number.startswith(HIDDEN_FILE_MARKER):
        errors.append(
            f"Document number cannot start with '{HIDDEN_FILE_MARKER}': {document_number!r}"
        )
    for character in FORBIDDEN_CHARACTERS:
        if character in document_number:
            errors.append(f"Document number cannot contain '{character}': {document_number!r}")
    return errors


def preview_document_number(
    template: str,
    prefix: str,
    number: int,
    number_year: int,
    when: Optional[datetime] = None,
) -> str:
    """Render a number without consuming it. Invalid templates yield an error string."""
    validation = validate_template(template)
    if not validation.valid:
        return f"Error: {validation.errors[0]}"
    return format_document_number(template, build_variables(prefix, number, number_year, when))
