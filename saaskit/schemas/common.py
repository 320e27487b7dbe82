"""
schemas/common.py
-----------------
Field rules shared by several request bodies.
"""

import re
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, model_validator

from saaskit.core.tenant_resolver import RESERVED_SUBDOMAINS

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SLUG_MIN_LENGTH = 3
SLUG_MAX_LENGTH = 63

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 100


def slug_problems(slug: str) -> list[str]:
    problems = []
    if len(slug) < SLUG_MIN_LENGTH:
        problems.append(f"Slug must be at least {SLUG_MIN_LENGTH} characters")
    if len(slug) > SLUG_MAX_LENGTH:
        problems.append(f"Slug must be at most {SLUG_MAX_LENGTH} characters")
    if not SLUG_PATTERN.match(slug):
        problems.append(
            "Slug may only contain lowercase letters, numbers and single hyphens"
        )
    if slug in RESERVED_SUBDOMAINS:
        problems.append(f"Slug '{slug}' is reserved")
    return problems


def check_slug(slug: str) -> str:
    problems = slug_problems(slug)
    if problems:
        raise ValueError(problems[0])
    return slug


def check_password_strength(password: str) -> str:
    if not re.search(r"[A-Z]", password):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        raise ValueError("Password must contain at least one number")
    return password


StrongPassword = Annotated[
    str,
    Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH),
    AfterValidator(check_password_strength),
]


class PasswordConfirmation(BaseModel):
    """Base for bodies carrying `password` + `confirm_password`."""

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self
