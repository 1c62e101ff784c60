# readquest/handlers/router.py
from aiogram import Router

from readquest.handlers.common import router as common_router
from readquest.handlers.user.router import router as user_router

router = Router()

router.include_router(user_router)
router.include_router(common_router)
