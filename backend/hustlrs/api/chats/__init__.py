"""Chats API."""
from fastapi import APIRouter

from hustlrs.api.chats import routes_chats

router = APIRouter()

router.include_router(routes_chats.router, prefix="/chats", tags=["chats"])
