# readquest/handlers/user/router.py
from aiogram import Router

from readquest.handlers.user.books import router as books_router
from readquest.handlers.user.challenges import router as challenges_router
from readquest.handlers.user.gift_cards import router as gift_cards_router
from readquest.handlers.user.level_rewards import router as level_rewards_router
from readquest.handlers.user.profile import router as profile_router
from readquest.handlers.user.spin import router as spin_router
from readquest.handlers.user.streak import router as streak_router

router = Router(name="user")

router.include_router(spin_router)
router.include_router(books_router)
router.include_router(streak_router)
router.include_router(profile_router)
router.include_router(challenges_router)
router.include_router(level_rewards_router)
router.include_router(gift_cards_router)
