# ============================================================
# camel_model.py — Shared Pydantic Base for camelCase Payloads
# ============================================================
# The browser client and the model prompts both speak camelCase
# JSON ("matchPercentage", "sessionId"); Python code uses
# snake_case attributes. Dump with by_alias=True for the wire.
# ============================================================

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting both camelCase and snake_case field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        """Serialize with camelCase keys for JSON responses."""
        return self.model_dump(mode="json", by_alias=True)
