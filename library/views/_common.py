"""Common utilities for views."""

from django.http import JsonResponse

from ..exceptions import LibraryError


def error_response(error: LibraryError, status: int) -> JsonResponse:
    """JSON body describing a library error."""
    return JsonResponse({"error": error.as_dict()}, status=status)
