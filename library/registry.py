"""Game registry store.

Thin persistence layer over the Game model. Every write runs in its own
transaction so a concurrent reader sees either the old or the new record,
never a half-written one.
"""

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone

from .exceptions import NotFoundError
from .models import Game
from .parser import parse_game_filename
from .scanner import FileDescriptor

logger = logging.getLogger(__name__)


def _apply_descriptor(game: Game, descriptor: FileDescriptor) -> None:
    parsed = parse_game_filename(descriptor.path)
    game.file_path = descriptor.path
    game.size = descriptor.size
    game.title = parsed["title"][:255]
    game.version = parsed["version"][:50]
    game.release_year = parsed["release_year"]
    game.early_access = parsed["early_access"]


class GameRegistry:
    """Find, upsert and soft-delete game records."""

    def find_by_id(self, game_id: int) -> Game:
        """
        Get a live game by id.

        Raises:
            NotFoundError: If the id is unknown or the game is soft-deleted
        """
        try:
            return Game.objects.get(pk=game_id)
        except Game.DoesNotExist:
            raise NotFoundError(f"Game {game_id} not found", game_id=game_id)

    def find_all_live(self) -> list[Game]:
        return list(Game.objects.all())

    def find_random(self) -> Game:
        """
        Pick one live game at random.

        Raises:
            NotFoundError: If the library has no live games
        """
        game = Game.objects.order_by("?").first()
        if game is None:
            raise NotFoundError("The library has no games")
        return game

    def find_all(self) -> list[Game]:
        """Snapshot of every record, soft-deleted ones included."""
        return list(Game.all_objects.order_by("id"))

    def upsert(
        self, descriptor: FileDescriptor, record_id: Optional[int] = None
    ) -> Game:
        """
        Insert or update the record for a file, keyed by checksum.

        Resolution order:
        1. A live record with the same checksum is moved to the new path.
        2. Otherwise the soft-deleted record ``record_id`` (or the most
           recently deleted one with this checksum) is revived.
        3. Otherwise a new record is created.

        Writing a descriptor that already matches the stored record changes
        nothing, which makes repeated application a no-op.

        Args:
            descriptor: The scanned file
            record_id: Preferred soft-deleted record to revive

        Returns:
            The stored Game
        """
        with transaction.atomic():
            game = (
                Game.all_objects.select_for_update()
                .filter(checksum=descriptor.checksum, deleted_at__isnull=True)
                .first()
            )
            if game is not None:
                if game.file_path != descriptor.path or game.size != descriptor.size:
                    previous_path = game.file_path
                    _apply_descriptor(game, descriptor)
                    game.save()
                    logger.debug(
                        "Moved game %s: %s -> %s",
                        game.pk,
                        previous_path,
                        descriptor.path,
                    )
                return game

            deleted = Game.all_objects.select_for_update().filter(
                checksum=descriptor.checksum, deleted_at__isnull=False
            )
            game = None
            if record_id is not None:
                game = deleted.filter(pk=record_id).first()
            if game is None:
                game = deleted.order_by("-deleted_at", "-id").first()

            if game is not None:
                _apply_descriptor(game, descriptor)
                game.deleted_at = None
                game.save()
                logger.debug("Revived game %s at %s", game.pk, descriptor.path)
                return game

            game = Game(checksum=descriptor.checksum)
            _apply_descriptor(game, descriptor)
            game.save()
            logger.debug("Created game %s at %s", game.pk, descriptor.path)
            return game

    def soft_delete(self, game_id: int, now=None) -> None:
        """Mark a live game as deleted. Already deleted games are untouched."""
        now = now or timezone.now()
        with transaction.atomic():
            updated = Game.objects.filter(pk=game_id).update(
                deleted_at=now, updated_at=now
            )
        if updated:
            logger.debug("Soft-deleted game %s", game_id)
