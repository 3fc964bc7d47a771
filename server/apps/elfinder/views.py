"""HTTP binding of the elFinder connector."""

import logging
from typing import TYPE_CHECKING, Any
from wsgiref.util import is_hop_by_hop

from django.core.files.storage import default_storage
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.utils.http import content_disposition_header
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from server.apps.elfinder.logic.connector import Connector
from server.apps.elfinder.options import ConnectorOptions

if TYPE_CHECKING:
    from server.apps.files.infrastructure.storage import ObjectStorage

logger = logging.getLogger(__name__)


def _get_storage() -> 'ObjectStorage':
    """Get the configured default storage backend.

    Returns:
        ObjectStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def get_connector() -> Connector:
    """Build a connector from the current settings."""
    return Connector(ConnectorOptions.from_settings(), _get_storage())


def collect_params(request: HttpRequest) -> dict[str, Any]:
    """Gather connector parameters from a request.

    List parameters are sent by the client as ``targets[]`` and
    ``upload[]``.

    Args:
        request: Incoming request.

    Returns:
        Parameters mapping for `Connector.run`.
    """
    source = request.POST if request.method == 'POST' else request.GET
    params: dict[str, Any] = {
        key: source.get(key) for key in source if not key.endswith('[]')
    }
    params['targets'] = source.getlist('targets[]') or source.getlist('targets')
    params['upload'] = (
        request.FILES.getlist('upload[]') or request.FILES.getlist('upload')
    )
    return params


# The elFinder client posts uploads and edits without a CSRF token
@csrf_exempt
@require_http_methods(['GET', 'POST'])
def connector(request: HttpRequest) -> HttpResponse:
    """Run one connector command.

    Args:
        request: Incoming request.

    Returns:
        JSON payload, or the raw file for ``file`` and file ``open``.
    """
    headers, payload = get_connector().run(collect_params(request))

    if 'file_data' in payload:
        response: HttpResponse = HttpResponse(
            payload['file_data'],
            content_type=payload['mime_type'],
        )
        response['Content-Disposition'] = content_disposition_header(
            as_attachment=payload['disposition'] == 'attachment',
            filename=payload['filename'],
        )
    else:
        response = JsonResponse(payload)

    for name, value in headers.items():
        # WSGI servers manage connection headers themselves
        if is_hop_by_hop(name):
            logger.debug('Skipping hop-by-hop header: %s', name)
            continue
        response[name] = value
    return response
