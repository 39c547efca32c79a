"""File serving and download views."""

from django.http import HttpResponse, StreamingHttpResponse
from django.views.decorators.http import require_safe

from ._common import error_response
from ..download import download, parse_speed_limit_header
from ..exceptions import FileAccessError, NotFoundError, RangeNotSatisfiable

SPEED_LIMIT_HEADER = "X-Download-Speed-Limit"


@require_safe
def download_game(request, pk: int):
    """Stream a game file. HEAD returns the same headers without a body.

    Headers:
        Range: single byte range (bytes=a-b, bytes=a-, bytes=-n)
        X-Download-Speed-Limit: limit in KiB/s, unlimited when absent
    """
    speed_limit = parse_speed_limit_header(request.headers.get(SPEED_LIMIT_HEADER))

    try:
        result = download(
            pk, speed_limit=speed_limit, range_header=request.headers.get("Range")
        )
    except NotFoundError as e:
        return error_response(e, 404)
    except RangeNotSatisfiable as e:
        response = error_response(e, 416)
        response["Accept-Ranges"] = "bytes"
        response["Content-Range"] = f"bytes */{e.file_size}"
        return response
    except FileAccessError as e:
        # The registry is stale; a reindex will pick up the change
        return error_response(e, 503)

    if request.method == "HEAD":
        result.stream.close()
        response = HttpResponse(status=result.status)
    else:
        response = StreamingHttpResponse(result.stream, status=result.status)
    for header, value in result.headers.items():
        response[header] = value
    return response
