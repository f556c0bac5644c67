"""
Protected admin router with JWT authentication.
Every route added here requires a full admin access token.
"""

from fastapi import APIRouter, Depends
from api.auth.jwt_utils import get_current_admin

admin_router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(get_current_admin)]
)
