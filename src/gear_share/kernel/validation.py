"""
Caller input parsing

Commands are pydantic models; a malformed field from the caller surfaces as
the exchange's own ValidationError rather than pydantic's.
"""

from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from gear_share.kernel.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


def parse_input(model_cls: type[M], data: Any = None, /, **fields: Any) -> M:
    """
    Build a command or value object from caller input

    Example:
        >>> parse_input(ProviderRef, {"provider_type": "school", "provider_id": "s1"})
        ProviderRef(provider_type=<ProviderType.SCHOOL: 'school'>, provider_id='s1')
    """
    if isinstance(data, model_cls):
        return data
    try:
        if data is not None:
            return model_cls.model_validate(data)
        return model_cls(**fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(
            f"Invalid {model_cls.__name__}: {first.get('msg', 'invalid value')}",
            field=field,
        ) from e
