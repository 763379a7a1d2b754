"""MongoDB document models for MentorMatch authentication."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from mentormatch_auth.types import UserRole


class BaseUserDocument(BaseModel):
    """
    Base Pydantic model for user documents in MongoDB.

    Defines the fields the registration, verification and login flows rely
    on. Applications inherit from this class and add their profile fields.

    Required fields:
        - id: Unique identifier (MongoDB ObjectId as string, optional for auto-generation)
        - email: User's email address (unique, indexed, lowercased)
        - name: Display name used in emails
        - password_hash: bcrypt hash (None for accounts without a password)
        - role: mentee, mentor or admin
        - is_email_verified: Whether the email verification code was accepted
        - is_active: False once the account is deactivated
        - last_login_at: Timestamp of the last successful login

    Example:
        ```python
        class User(BaseUserDocument):
            timezone: str | None = None
            goals: list[str] = []
        ```
    """

    # MongoDB _id field (ObjectId as string)
    id: str | None = Field(default=None, alias="_id")

    email: EmailStr = Field(..., description="User's email address")
    name: str = Field(..., min_length=1, max_length=100)
    password_hash: str | None = Field(default=None, repr=False)
    role: UserRole = Field(default=UserRole.MENTEE)

    is_email_verified: bool = Field(
        default=False, description="Whether user has verified their email"
    )
    is_active: bool = Field(default=True, description="Whether the account is active")

    last_login_at: datetime | None = Field(default=None)
    created_at: datetime | None = Field(default=None)

    model_config = ConfigDict(
        populate_by_name=True,  # Allow both 'id' and '_id'
        from_attributes=True,
    )
