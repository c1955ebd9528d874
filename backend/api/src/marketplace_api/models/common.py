"""Shared API request/response models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from marketplace_core.models.errors import ErrorCode, ErrorResponse

__all__ = [
    "ApiModel",
    "ErrorCode",
    "ErrorResponse",
    "ValidationErrorDetail",
    "ValidationErrorResponse",
    "format_validation_errors",
]


class ApiModel(BaseModel):
    """Base for HTTP bodies: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ValidationErrorDetail(BaseModel):
    """Detail of a single validation error."""

    model_config = ConfigDict(strict=True)

    loc: list[str | int] = Field(
        ...,
        description="Path to the field that failed validation",
        examples=[["body", "cancelledBy"]],
    )
    msg: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Error type identifier", examples=["missing"])


class ValidationErrorResponse(BaseModel):
    """Body for request validation errors (HTTP 400)."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: str = ErrorCode.INVALID_INPUT.value
    message: str = "Request validation failed"
    recovery: str = "Check the request body and try again"
    details: list[ValidationErrorDetail] = Field(default_factory=list)


def format_validation_errors(errors: list[dict[str, Any]]) -> ValidationErrorResponse:
    """Convert Pydantic validation errors to a ValidationErrorResponse.

    Args:
        errors: Error dicts from ``ValidationError.errors()``
    """
    details = [
        ValidationErrorDetail(
            loc=[str(loc) for loc in error.get("loc", [])],
            msg=str(error.get("msg", "")),
            type=str(error.get("type", "")),
        )
        for error in errors
    ]
    return ValidationErrorResponse(details=details)
