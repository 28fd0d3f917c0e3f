"""
Request Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Types, required fields, ranges (negative prices, padding widths...)
- Done by the pydantic request models; parse_request() turns a pydantic
  ValidationError into ValidationFailedError with one issue per field

STAGE 2 - SEMANTIC VALIDATION:
- Rules that need context: an empty item list, an unknown number template
  placeholder, a business profile created without contact details
- Done by DocumentValidator / SettingsValidator below

Both stages run before anything is written. Validation NEVER silently fixes
input; it reports issues and the orchestrator refuses the write on errors.
"""

from decimal import Decimal
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from invoicebook.models.database import Business, UpdateBusinessRequest, UpdateSettingsRequest
from invoicebook.models.document import (
    CreateDocumentRequest,
    Document,
    DocumentItemInput,
    UpdateDocumentRequest,
)
from invoicebook.models.validation import ValidationIssue, ValidationResult
from invoicebook.numbering.template import validate_template


ModelT = TypeVar("ModelT", bound=BaseModel)


class ValidationFailedError(Exception):
    """Input rejected before any write."""

    http_status = 400

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        errors = [issue for issue in issues if issue.severity == "error"] or issues
        message = "; ".join(issue.message for issue in errors) or "Validation failed"
        super().__init__(message)


def parse_request(model: type[ModelT], payload: Any) -> ModelT:
    """
    Stage 1: build a request model from an adapter payload.

    Raises:
        ValidationFailedError: With one issue per pydantic error
    """
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailedError(issues_from_pydantic(e)) from e


def issues_from_pydantic(error: ValidationError) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            field=".".join(str(part) for part in err["loc"]) or "request",
            issue_type=err["type"],
            message=f"{'.'.join(str(part) for part in err['loc']) or 'request'}: {err['msg']}",
            severity="error",
        )
        for err in error.errors()
    ]


def ensure_valid(result: ValidationResult) -> ValidationResult:
    """Raise ValidationFailedError if the result has errors, else pass it through."""
    if not result.is_valid:
        raise ValidationFailedError(result.issues)
    return result


class DocumentValidator:
    """Semantic checks for offer/invoice requests."""

    def _validate_items(self, items: list[DocumentItemInput]) -> list[ValidationIssue]:
        issues = []

        if not items:
            issues.append(ValidationIssue(
                field="items",
                issue_type="missing",
                message="At least one item is required",
                severity="error",
            ))
            return issues

        for index, item in enumerate(items):
            if item.quantity == 0 or item.unit_price == 0:
                issues.append(ValidationIssue(
                    field=f"items.{index}",
                    issue_type="zero_amount",
                    message=f"Item '{item.description}' has a total of zero",
                    severity="warning",
                ))

        return issues

    def validate_create(self, request: CreateDocumentRequest) -> ValidationResult:
        issues = self._validate_items(request.items)

        if request.tax_rate is not None and request.tax_rate > Decimal("50"):
            issues.append(ValidationIssue(
                field="tax_rate",
                issue_type="suspicious_value",
                message=f"Tax rate of {request.tax_rate}% seems unusually high",
                severity="warning",
            ))

        return ValidationResult(issues=issues)

    def validate_update(
        self,
        request: UpdateDocumentRequest,
        document: Document,
    ) -> ValidationResult:
        issues = []

        if request.items is not None:
            issues.extend(self._validate_items(request.items))

        if request.customer_id is not None and not request.customer_id.strip():
            issues.append(ValidationIssue(
                field="customer_id",
                issue_type="missing",
                message="Customer id cannot be empty",
                severity="error",
            ))

        if request.status_note and request.status in (None, document.status):
            issues.append(ValidationIssue(
                field="status_note",
                issue_type="ignored",
                message="Status note ignored because the status did not change",
                severity="info",
            ))

        return ValidationResult(issues=issues)

    def validate_conversion(self, offer: Document) -> ValidationResult:
        issues = []
        if offer.converted_to_invoice_id:
            issues.append(ValidationIssue(
                field="offer_id",
                issue_type="already_converted",
                message=(
                    f"Offer {offer.document_number} was already converted "
                    f"(invoice {offer.converted_to_invoice_id})"
                ),
                severity="error",
            ))
        return ValidationResult(issues=issues)


class SettingsValidator:
    """Semantic checks for settings and business profile updates."""

    def validate_settings_update(self, request: UpdateSettingsRequest) -> ValidationResult:
        issues = []

        for field in ("offer_number_format", "invoice_number_format"):
            template = getattr(request, field)
            if template is None:
                continue
            result = validate_template(template)
            for message in result.errors:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_template",
                    message=message,
                    severity="error",
                ))
            for message in result.warnings:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="template_warning",
                    message=message,
                    severity="warning",
                ))

        for field in ("offer_prefix", "invoice_prefix"):
            prefix = getattr(request, field)
            if prefix is None:
                continue
            if "/" in prefix or "\\" in prefix:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_value",
                    message=f"Prefix cannot contain path separators: {prefix!r}",
                    severity="error",
                ))
            if prefix.startswith("."):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_value",
                    message=f"Prefix cannot start with '.': {prefix!r}",
                    severity="error",
                ))

        for field in ("offer_counters_by_year", "invoice_counters_by_year"):
            counters = getattr(request, field) or {}
            for year, value in counters.items():
                if not year.isdigit() or value < 1:
                    issues.append(ValidationIssue(
                        field=f"{field}.{year}",
                        issue_type="invalid_value",
                        message=f"Counter for year {year!r} must be a year with a value of at least 1",
                        severity="error",
                    ))

        return ValidationResult(issues=issues)

    def validate_business_update(
        self,
        request: UpdateBusinessRequest,
        existing: Optional[Business],
    ) -> ValidationResult:
        """The first save of the profile must carry the contact details."""
        issues = []
        if existing is None:
            for field in ("name", "address", "phone", "email"):
                if not getattr(request, field):
                    issues.append(ValidationIssue(
                        field=field,
                        issue_type="missing",
                        message=f"Business {field} is required",
                        severity="error",
                    ))
        return ValidationResult(issues=issues)
