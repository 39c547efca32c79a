"""Library reindex views."""

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods

from ._common import error_response
from ..exceptions import ReindexInProgress
from ..models import IndexJob
from ..queues import PRIORITY_HIGH
from ..reconcile import reindex
from ..tasks import queue_reindex

RECENT_JOBS_LIMIT = 20


@csrf_exempt
@require_http_methods(["PUT"])
def reindex_games(request):
    """Scan the library and reconcile the registry.

    Runs synchronously and returns the live games plus a report. With
    ``?background=1`` the pass is queued on the worker instead and the
    response is 202 with the IndexJob.
    """
    if request.GET.get("background") == "1":
        job = queue_reindex(trigger=IndexJob.TRIGGER_API, priority=PRIORITY_HIGH)
        if job is None:
            return error_response(
                ReindexInProgress("A reindex is already queued"), 409
            )
        return JsonResponse({"job": job.to_dict()}, status=202)

    try:
        result = reindex(trigger=IndexJob.TRIGGER_API)
    except ReindexInProgress as e:
        return error_response(e, 409)

    return JsonResponse(
        {
            "games": [game.to_dict() for game in result.games],
            "report": result.summary(),
        }
    )


@require_GET
def index_jobs(request):
    """Recent reindex runs, newest first."""
    jobs = IndexJob.objects.all()[:RECENT_JOBS_LIMIT]
    return JsonResponse({"jobs": [job.to_dict() for job in jobs]})
