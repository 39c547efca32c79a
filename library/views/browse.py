"""Game listing views."""

from django.http import JsonResponse
from django.views.decorators.http import require_GET

from ._common import error_response
from ..exceptions import NotFoundError
from ..models import Game
from ..registry import GameRegistry


@require_GET
def game_list(request):
    """List every live game."""
    games = GameRegistry().find_all_live()
    return JsonResponse({"games": [game.to_dict() for game in games]})


@require_GET
def game_detail(request, pk: int):
    """Details for one game, soft-deleted games included."""
    game = Game.all_objects.filter(pk=pk).first()
    if game is None:
        return error_response(NotFoundError(f"Game {pk} not found", game_id=pk), 404)
    return JsonResponse(game.to_dict())


@require_GET
def game_random(request):
    """One live game picked at random."""
    try:
        game = GameRegistry().find_random()
    except NotFoundError as e:
        return error_response(e, 404)
    return JsonResponse(game.to_dict())
