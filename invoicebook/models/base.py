"""
Shared model plumbing.

Everything persisted to disk uses camelCase keys (the on-disk format predates
this package) while Python code uses snake_case attributes. Money is always a
Decimal quantized to cents.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_cents(value: Decimal | int | float | str) -> Decimal:
    """Quantize a monetary value to cents, rounding half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    """Timezone-aware current time. All stored timestamps are UTC."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class CamelModel(BaseModel):
    """Base for every model that crosses the storage or adapter boundary."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_storage(self) -> dict:
        """JSON-ready dict with on-disk (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True)
