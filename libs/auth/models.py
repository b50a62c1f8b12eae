from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AuthUser(BaseModel):
    """
    Represents an authenticated user from a Supabase access token.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = "authenticated"
    # Organization the user is currently acting for (set by the auth service).
    active_organization_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "service_role"
