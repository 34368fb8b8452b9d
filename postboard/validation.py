from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import PostValidationError
from .models import TITLE_MAX_LENGTH
from .repository import SETTABLE_FIELDS


class PostInput(BaseModel):
    '''Fields a client may submit when creating or updating a post.'''

    title: str = Field(max_length=TITLE_MAX_LENGTH)
    content: str

    model_config = ConfigDict(extra='ignore', strict=True)

    @field_validator('title', 'content', mode='before')
    @classmethod
    def required(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError('required')
        return value


def _message(field: str, error_type: str) -> str:
    if error_type == 'string_too_long':
        return f'The {field} field must not be greater than {TITLE_MAX_LENGTH} characters.'
    if error_type == 'string_type':
        return f'The {field} field must be a string.'
    return f'The {field} field is required.'


def validate_post_input(form: Mapping[str, Any]) -> dict[str, str]:
    '''Validate the allow-listed post fields of a submitted form.

    Returns the clean fields, or raises PostValidationError carrying per-field
    messages and the submitted values.
    '''
    submitted = {name: form.get(name) for name in SETTABLE_FIELDS}
    try:
        return PostInput.model_validate(submitted).model_dump()
    except ValidationError as e:
        errors : dict[str, list[str]] = {}
        for error in e.errors():
            field = str(error['loc'][0])
            errors.setdefault(field, []).append(_message(field, error['type']))
        old = {name: value for name, value in submitted.items() if isinstance(value, str)}
        raise PostValidationError(errors, old) from e
