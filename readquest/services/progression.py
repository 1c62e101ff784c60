# readquest/services/progression.py
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import Book
from readquest.services.challenges import ChallengeProgressService, ProgressEvent, ProgressResult
from readquest.services.chest import ChestOpening, ChestService
from readquest.services.errors import AlreadyClaimedError, NotFoundError

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BookCompletion:
    book_id: int
    progress: list[ProgressResult] = field(default_factory=list)
    chest: ChestOpening | None = None
    chest_already_claimed: bool = False

    @property
    def completed_objectives(self) -> list[ProgressResult]:
        return [p for p in self.progress if p.just_completed]


class ProgressionService:
    """Reading events fanned out to challenge progress and the book chest."""

    @staticmethod
    async def complete_book(
        session: AsyncSession,
        user_id: int,
        book_id: int,
        *,
        today: date | None = None,
        rng: random.Random | None = None,
        is_admin: bool = False,
        period: str = "month",
    ) -> BookCompletion:
        book = await session.get(Book, book_id)
        if book is None:
            raise NotFoundError("Book", book_id)

        progress = await ChallengeProgressService.on_event(
            session,
            ProgressEvent.book_completed(user_id, book.id, book.genres or []),
        )

        # rereading a book still counts for challenges, the chest just stays shut
        try:
            chest = await ChestService.open_chest(
                session,
                user_id,
                book_id,
                today=today,
                rng=rng,
                is_admin=is_admin,
                period=period,
            )
        except AlreadyClaimedError:
            log.info("Book completed without chest user_id=%s book_id=%s", user_id, book_id)
            return BookCompletion(book_id=book_id, progress=progress, chest_already_claimed=True)

        return BookCompletion(book_id=book_id, progress=progress, chest=chest)

    @staticmethod
    async def complete_chapter(session: AsyncSession, user_id: int, book_id: int) -> list[ProgressResult]:
        book = await session.get(Book, book_id)
        if book is None:
            raise NotFoundError("Book", book_id)
        return await ChallengeProgressService.on_event(
            session,
            ProgressEvent.chapter_completed(user_id, book.id, book.genres or []),
        )
