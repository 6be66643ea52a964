"""
Shared Model Building Blocks

Timestamps, tag lists and the base classes every stored record
derives from. Also holds the validation issue models used by the
two-stage validator.

DESIGN DECISION: All timestamps are naive UTC datetimes.
MongoDB stores UTC without an offset and hands naive values back,
so everything in memory uses the same convention.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC. Naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _split_tags(value: Any) -> Any:
    # Clients may send "a, b, c" instead of a list, or a list of such strings
    if isinstance(value, str):
        value = [value]
    if isinstance(value, (list, tuple)):
        tags = []
        for item in value:
            if isinstance(item, str):
                tags.extend(tag.strip() for tag in item.split(",") if tag.strip())
            else:
                tags.append(item)
        return tags
    return value


Tag = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=30)]
TagList = Annotated[list[Tag], BeforeValidator(_split_tags)]


class TimestampedModel(BaseModel):
    """Base for payloads carrying datetimes; normalizes them to naive UTC."""

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("*", mode="after")
    @classmethod
    def normalize_datetimes(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return to_naive_utc(v)
        return v


class OwnedRecord(TimestampedModel):
    """
    A record stored in a per-user collection.

    `id` and `user_id` are ObjectId hex strings. They are None only
    before the first insert.
    """

    id: Optional[str] = Field(
        default=None,
        description="Record identifier"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="Owning user"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        description="When the record was created"
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        description="Last update timestamp"
    )


# =============================================================================
# VALIDATION RESULTS
# =============================================================================

class ValidationIssue(BaseModel):
    """One problem with one field of a payload."""

    field: str
    issue_type: str = Field(..., description="Short code such as 'in_past' or 'too_short'")
    message: str
    severity: str = Field(default="error", pattern="^(error|warning)$")


class ValidationResult(BaseModel):
    """Issues one semantic check found. Warnings never block a write."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def error_messages(self) -> list[str]:
        """Messages for error-level issues, in the order found."""
        return [issue.message for issue in self.issues if issue.severity == "error"]
