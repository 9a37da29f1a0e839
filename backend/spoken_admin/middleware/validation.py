"""
Spoken Admin API — Schema Validation
======================================

What:  The Schema protocol the pipeline validates request bodies against,
       a pydantic-backed implementation, and the validate() entry point.
Why:   Routes declare WHAT a valid body looks like; the pipeline decides WHEN
       to check it. The validator itself knows no business rules.
How:   Schema.parse() returns the canonical (coerced, defaulted) value or
       raises SchemaValidationError carrying every violated field rule.
       validate() turns that into a ValidationResult the pipeline branches on.

Example:
    schema = PydanticSchema(CourseCreate)
    result = validate(schema, {"title": "ab"})
    result.is_valid   → False
    result.errors     → [FieldError(path=["description"], ...),
                         FieldError(path=["level"], ...)]
"""

from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, Protocol, Type, TypeVar

import pydantic

from spoken_admin.exceptions import SchemaValidationError
from spoken_admin.schemas.common import FieldError

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


class Schema(Protocol):
    """Anything that can turn an untrusted value into a canonical one."""

    def parse(self, value: Any) -> Any:
        """Return the canonical value or raise SchemaValidationError."""
        ...


class PydanticSchema(Generic[ModelT]):
    """
    Schema backed by a pydantic model.

    parse() returns a model instance. Pydantic collects every failing field
    in a single pass, so the raised error lists all of them.
    """

    def __init__(self, model: Type[ModelT]):
        self.model = model

    def parse(self, value: Any) -> ModelT:
        try:
            return self.model.model_validate(value)
        except pydantic.ValidationError as exc:
            raise SchemaValidationError(
                [
                    FieldError(path=list(error["loc"]), message=error["msg"])
                    for error in exc.errors()
                ]
            ) from exc

    def __repr__(self) -> str:
        return f"PydanticSchema({self.model.__name__})"


@dataclass
class ValidationResult:
    """Outcome of validate(): the canonical value, or the full error list."""

    value: Optional[Any] = None
    errors: List[FieldError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate(schema: Schema, value: Any) -> ValidationResult:
    """Run `schema` over `value`, collecting violations instead of raising."""
    try:
        return ValidationResult(value=schema.parse(value))
    except SchemaValidationError as exc:
        errors = exc.errors or [FieldError(path=[], message=exc.message)]
        return ValidationResult(errors=errors)
