"""Authentication schemas."""

from pydantic import BaseModel


class AuthenticatedUser(BaseModel):
    """Caller identity decoded from the bearer token."""

    id: int
    organization_id: int
    email: str
    role_slug: str

    class Config:
        from_attributes = True
