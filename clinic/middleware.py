import time

from django.conf import settings
from prometheus_client import Histogram

HTTP_REQUEST_DURATION_MS = Histogram(
    'http_request_duration_ms',
    'Duration of HTTP requests in ms',
    ['method', 'route', 'code'],
    buckets=[50, 100, 200, 300, 400, 500, 1000, 2000],
)


def _route_label(request) -> str:
    match = getattr(request, 'resolver_match', None)
    if match is not None and match.route:
        return '/' + match.route.lstrip('/')
    return request.path


class RequestDurationMiddleware:
    """Record every request in the ``http_request_duration_ms`` histogram.

    The route label uses the matched URL pattern rather than the raw path
    so that ids in the path do not explode label cardinality.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.perf_counter()
        response = self.get_response(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        HTTP_REQUEST_DURATION_MS.labels(
            method=request.method,
            route=_route_label(request),
            code=str(response.status_code),
        ).observe(elapsed_ms)
        return response


class ContentSecurityPolicyMiddleware:
    """Attach the Content-Security-Policy header built from settings."""

    def __init__(self, get_response):
        self.get_response = get_response
        directives = getattr(settings, 'CONTENT_SECURITY_POLICY', {}) or {}
        self.header = '; '.join(f"{name} {' '.join(values)}" for name, values in directives.items())

    def __call__(self, request):
        response = self.get_response(request)
        if self.header and 'Content-Security-Policy' not in response:
            response['Content-Security-Policy'] = self.header
        return response
