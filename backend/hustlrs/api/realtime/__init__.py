"""Realtime API."""
from fastapi import APIRouter

from hustlrs.api.realtime import routes_ws

router = APIRouter()

router.include_router(routes_ws.router, tags=["realtime"])
