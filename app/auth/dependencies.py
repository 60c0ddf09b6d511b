from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CurrentUser
from app.auth.security import decode_access_token
from app.core.enums import RecordStatus, UserRole
from app.core.models import Faculty, Student
from app.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def resolve_user(token: str, db: AsyncSession) -> CurrentUser:
    """Build CurrentUser from a token. Faculty and student subjects must exist and be active."""
    payload: Optional[Dict[str, Any]] = decode_access_token(token)
    if not payload:
        raise _credentials_exception()

    user_id_str = payload.get("user_id") or payload.get("sub")
    role_name = payload.get("role")
    if not user_id_str or not role_name:
        raise _credentials_exception()
    try:
        user_id = UUID(str(user_id_str))
        role = UserRole(role_name)
    except ValueError:
        raise _credentials_exception()

    department = payload.get("department")
    name = payload.get("name")
    if role == UserRole.FACULTY:
        faculty = await db.get(Faculty, user_id)
        if not faculty or faculty.status != RecordStatus.ACTIVE.value:
            raise _credentials_exception()
        department, name = faculty.department, faculty.name
    elif role == UserRole.STUDENT:
        student = await db.get(Student, user_id)
        if not student or student.status != RecordStatus.ACTIVE.value:
            raise _credentials_exception()
        department, name = student.department, student.name

    return CurrentUser(id=user_id, role=role, department=department, name=name)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the authenticated user from the bearer access token."""
    return await resolve_user(token, db)


async def get_stream_user(
    token: str = Query(..., description="JWT access token"),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """EventSource cannot send headers, so the stream authenticates with ?token=."""
    return await resolve_user(token, db)
