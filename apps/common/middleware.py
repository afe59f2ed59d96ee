"""
Common middleware for the Storefront platform
Request correlation for logs and responses.
"""

import uuid
from collections.abc import Callable

from django.http import HttpRequest, HttpResponse

from apps.common.logging import clear_request_context, set_request_id

# ===============================================================================
# REQUEST ID MIDDLEWARE
# ===============================================================================

class RequestIDMiddleware:
    """Add unique request ID for tracing and audit logs"""

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]):
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        # Honour an upstream id from the load balancer, otherwise generate one
        request_id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())
        request.META['REQUEST_ID'] = request_id
        set_request_id(request_id)

        try:
            response = self.get_response(request)
        finally:
            clear_request_context()

        response['X-Request-ID'] = request_id
        return response
