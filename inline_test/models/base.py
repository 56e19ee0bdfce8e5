"""Base model configuration for validated settings."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Base model with frozen, strict-keys configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")
