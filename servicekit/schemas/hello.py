"""Pydantic schemas for the hello example service."""

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class Member(BaseModel):
    """A registered member of the hello service."""

    name: str = Field(..., min_length=1, description="Display name as provided by the caller.")
    email: str = Field(
        ...,
        pattern=EMAIL_PATTERN,
        description="Address derived from the member name.",
    )


class HelloMemberRequest(BaseModel):
    name: str = Field(
        ...,
        min_length=1,
        pattern=r"\S",
        description="Name of the member to greet and store; must contain a non-blank character.",
    )


HelloMemberResponse = Member


class GetMembersRequest(BaseModel):
    """Takes no parameters; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")


GetMembersResponse = list[Member]
