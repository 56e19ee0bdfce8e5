"""Configuration for scanning and running inline tests."""

from collections.abc import Sequence
from typing import Literal

from pydantic import Field, field_validator

from inline_test.models.base import Model
from inline_test.syntax import DEFAULT_KEYWORD


class ScanConfig(Model):
    """Settings shared by the scanner and the command line."""

    keyword: str = Field(
        default=DEFAULT_KEYWORD,
        description="Decorator name that declares a test",
    )
    preload: Sequence[str] = Field(
        default_factory=list,
        description="Modules imported into the session namespace before scanning",
    )
    include: Sequence[str] = Field(
        default_factory=lambda: ["*.py"],
        description="Glob patterns selecting files when a directory is scanned",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level of the command line"
    )

    @field_validator("keyword")
    @classmethod
    def _keyword_is_identifier(cls, value: str) -> str:
        if not value.isidentifier():
            raise ValueError(f"'{value}' is not a valid decorator name")
        return value
