from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """
    Registration payload.

    Fields are optional at the schema level on purpose: the service applies
    the validation rules in a fixed order and reports the first failure with
    its own message, which FastAPI's automatic validation cannot do.
    """
    user_id: Optional[str] = Field(default=None, alias="userId")
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    password: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class SessionData(BaseModel):
    """
    Logical payload kept in the session store.

    Extra keys are preserved so the payload can carry more than identity.
    """
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_name: Optional[str] = Field(default=None, alias="userName")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class MessageResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    redirect: Optional[str] = None


class RegisterResponse(MessageResponse):
    logged_in: bool = Field(alias="loggedIn")

    model_config = ConfigDict(populate_by_name=True)


class SessionStatus(BaseModel):
    logged_in: bool = Field(alias="loggedIn")
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_name: Optional[str] = Field(default=None, alias="userName")

    model_config = ConfigDict(populate_by_name=True)


class UserResponse(BaseModel):
    """
    Safe user representation for API responses.

    Critical: Never include password_hash in any response.
    """
    user_id: str = Field(alias="userId")
    name: str
    email: str
    phone: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)
