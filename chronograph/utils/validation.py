"""Helpers for turning pydantic input errors into ChronoGraph validation errors."""

from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from chronograph.utils.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def format_errors(error: PydanticValidationError) -> list[str]:
    """Flatten pydantic errors into "field: message" strings."""
    return [
        f"{'.'.join(str(part) for part in err['loc']) or 'input'}: {err['msg']}"
        for err in error.errors()
    ]


def parse_input(model: type[ModelT], data: ModelT | dict[str, Any] | None) -> ModelT:
    """
    Validate caller input against a pydantic model.

    Args:
        model: Input model class
        data: Model instance or raw mapping

    Returns:
        Validated model instance

    Raises:
        ValidationError: If the input is missing or invalid
    """
    if isinstance(data, model):
        return data
    if data is None:
        raise ValidationError(f"Missing {model.__name__} input")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = format_errors(e)
        raise ValidationError(
            f"Invalid {model.__name__}: {'; '.join(errors)}",
            context={"errors": errors},
        ) from e


def require_user_id(user_id: str | None) -> str:
    """Reject empty user identifiers."""
    if not user_id or not str(user_id).strip():
        raise ValidationError("user_id is required")
    return user_id
