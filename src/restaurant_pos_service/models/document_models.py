"""Base model for records stored in the POS document table.

Every record lives under an organization (the partition key) and is addressed
by ``"{collection}#{doc_id}"`` within it, the same shape as
``organizations/{orgId}/{collection}/{docId}``.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, Field

SORT_KEY_SEPARATOR = "#"


def utc_now() -> datetime:
    """Current UTC time, used for server-assigned timestamps."""
    return datetime.now(UTC)


def to_dynamodb_value(value: Any) -> Any:
    """Convert a python value to something boto3 can serialize.

    DynamoDB rejects floats, so they become Decimals; datetimes are stored as
    ISO-8601 strings and enums by value.
    """
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamodb_value(v) for k, v in value.items() if v is not None}
    if isinstance(value, list | tuple):
        return [to_dynamodb_value(v) for v in value]
    return value


class DocumentModel(BaseModel):
    """A record owned by exactly one organization."""

    collection: ClassVar[str] = ""

    id: str = Field(..., description="Document identifier")
    organization_id: str = Field(..., description="Owning organization (tenant)")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def sort_key(self) -> str:
        return f"{self.collection}{SORT_KEY_SEPARATOR}{self.id}"

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation including the sort key
        """
        item: dict[str, Any] = to_dynamodb_value(self.model_dump(exclude_none=True))
        item["sk"] = self.sort_key
        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> Any:
        """Create the model from a DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Parsed model instance
        """
        data = {k: v for k, v in item.items() if k != "sk"}
        return cls.model_validate(data)
