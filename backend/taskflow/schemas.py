from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskflow.models import TaskStatus

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserOut(BaseModel):
    id: str
    email: str
    name: str

    model_config = ConfigDict(from_attributes=True)


def _strip(value: object) -> object:
    if isinstance(value, str):
        return value.strip()
    return value


class RegisterRequest(BaseModel):
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=4, max_length=120)

    @field_validator("password", "name", mode="before")
    def strip_text(cls, value: object) -> object:
        return _strip(value)


class LoginRequest(BaseModel):
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=128)

    @field_validator("password", mode="before")
    def strip_password(cls, value: object) -> object:
        return _strip(value)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(TokenPair):
    user: UserOut


class StatusResponse(BaseModel):
    status: str = "ok"


class TaskCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: TaskStatus = TaskStatus.PENDING

    model_config = ConfigDict(str_strip_whitespace=True)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: Optional[TaskStatus] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class TaskOut(BaseModel):
    id: str
    title: str
    description: Optional[str]
    status: TaskStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaginatedTasks(BaseModel):
    items: List[TaskOut]
    total: int
    page: int
    limit: int
    total_pages: int
