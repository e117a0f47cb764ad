from typing import Any, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from shopcore.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Strict base for input payloads: unknown fields are rejected, strings trimmed
class PayloadBase(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


def parse(schema: Type[M], data: Union[M, dict, None], **extra: Any) -> M:
    """Validate a payload, reporting every failing field at once."""
    if isinstance(data, schema) and not extra:
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return schema.model_validate({**(data or {}), **extra})
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc
