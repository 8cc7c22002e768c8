from typing import Annotated

from pydantic import AfterValidator, BaseModel, EmailStr, Field


def _lower(value: str) -> str:
    return value.lower()


NormalizedEmail = Annotated[EmailStr, AfterValidator(_lower)]


class RegisterRequest(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: NormalizedEmail
    password: str = Field(min_length=6, max_length=100)


class LoginRequest(BaseModel):
    email: NormalizedEmail
    password: str = Field(min_length=1)


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: NormalizedEmail


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=6, max_length=100)
