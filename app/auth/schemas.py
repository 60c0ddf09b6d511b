from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from app.core.enums import UserRole


class CurrentUser(BaseModel):
    """Authenticated actor resolved from the access token.
    department scopes hod/faculty/student actions; admin acts on every department.
    """

    id: UUID
    role: UserRole
    department: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_hod_or_above(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.HOD)
