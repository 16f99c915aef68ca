"""Users API."""
from fastapi import APIRouter

from hustlrs.api.users import routes_devices, routes_users

router = APIRouter()

router.include_router(routes_users.router, prefix="/users", tags=["users"])
router.include_router(routes_devices.router, prefix="/devices", tags=["devices"])
