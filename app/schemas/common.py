"""Shared API schemas."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that serializes snake_case fields as camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ErrorResponse(CamelModel):
    """Body of every error reply; ``code`` carries the gateway or domain error code when there is one."""

    detail: str
    type: str
    code: str | None = None

    @classmethod
    def from_exception(cls, exc: Exception) -> "ErrorResponse":
        code: object = getattr(exc, "code", None)
        return cls(
            detail=str(exc),
            type=type(exc).__name__,
            code=code if isinstance(code, str) else None,
        )
