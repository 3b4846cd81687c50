"""Shared base class for accounting API wire models."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model for JSON exchanged with the accounting API.

    Attributes are snake_case in Python and camelCase on the wire. Unknown
    response keys are ignored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        """Serialize to a camelCase JSON-compatible dict."""
        return self.model_dump(mode="json", by_alias=True)
