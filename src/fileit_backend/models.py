from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    username: str
    token: str


class BookNames(BaseModel):
    books: List[str]


class SignedUrl(BaseModel):
    url: str
    expires_in: int


class ContentUploadResult(BaseModel):
    Success: str
    pages: int
    paths: List[str]
