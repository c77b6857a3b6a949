"""Pydantic models for credential form input."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import InvalidFormInput


class LoginForm(BaseModel):
    """Email/password pair submitted for sign-in."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    email: str = Field(min_length=1)
    password: str = Field(min_length=1, repr=False)

    @field_validator("email")
    @classmethod
    def _strip_email(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("email must not be blank")
        return v


class RegistrationForm(LoginForm):
    """Account creation input; the display name is required."""

    display_name: str = Field(min_length=1)

    @field_validator("display_name")
    @classmethod
    def _strip_display_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("display_name must not be blank")
        return v


FormT = TypeVar("FormT", bound=BaseModel)


def parse_form(model: type[FormT], **fields: Any) -> FormT:
    """Validate raw form fields into ``model``.

    Raises
    ------
    InvalidFormInput
        If any field is missing or empty. The first failing field is
        reported; the submitted values are never echoed back.
    """
    try:
        return model(**fields)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        msg = f"Invalid {field or 'form'}: {first.get('msg', 'invalid value')}"
        raise InvalidFormInput(msg, field=field) from exc
