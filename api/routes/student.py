"""
api/routes/student.py -- Routes for students.

Routes:
  GET /api/student/profile  -- the student's own account
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import UserResponse
from auth.dependencies import require_student
from auth.models import User

router = APIRouter(prefix="/student")


@router.get("/profile", response_model=UserResponse)
def profile(current_user: User = Depends(require_student)) -> UserResponse:
    return UserResponse.from_user(current_user)
