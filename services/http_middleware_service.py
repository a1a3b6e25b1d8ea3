import time
import uuid

_SECURITY_HEADERS: dict[str, str] = {
    'Content-Security-Policy': "default-src 'none'; frame-ancestors 'none'",
    'X-Content-Type-Options': 'nosniff',
    'Referrer-Policy': 'no-referrer',
    'X-Frame-Options': 'DENY',
    'Cache-Control': 'no-store',
}
_REQUEST_ID_HEADER = 'X-Request-ID'
_MAX_REQUEST_ID_LENGTH = 64


def request_id_core(headers) -> str:
    """Reuse a caller-supplied request id when it is short and printable."""
    supplied = str(headers.get(_REQUEST_ID_HEADER.lower(), '') or '').strip()
    if supplied and len(supplied) <= _MAX_REQUEST_ID_LENGTH and supplied.isprintable():
        return supplied
    return uuid.uuid4().hex


async def add_security_headers_core(*, request, call_next, deps: dict[str, object]):
    _metrics_service = deps['metrics_service']
    _log_event = deps['log_event']
    _request_body_limit_bytes = deps['request_body_limit_bytes']
    _json_response_cls = deps['json_response_cls']

    started = time.perf_counter()
    request_id = request_id_core(request.headers)

    def _finalize(response):
        route = request.scope.get('route')
        route_path = str(getattr(route, 'path', '') or request.url.path)
        _metrics_service.record_request_core(
            method=request.method,
            path=route_path,
            status_code=int(response.status_code),
        )
        _log_event(
            'request_complete',
            request_id=request_id,
            method=request.method.upper(),
            path=route_path,
            status_code=int(response.status_code),
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        response.headers.setdefault(_REQUEST_ID_HEADER, request_id)
        return response

    limit = _request_body_limit_bytes(request.method)
    content_length = request.headers.get('content-length', '').strip()
    if limit > 0 and content_length.isdigit() and int(content_length) > limit:
        return _finalize(_json_response_cls(
            status_code=413,
            content={'detail': f'Request body too large. Limit is {limit} bytes.'},
        ))

    try:
        response = await call_next(request)
    except Exception as exc:
        _log_event('request_exception', request_id=request_id, path=request.url.path, error=str(exc))
        _finalize(_json_response_cls(status_code=500, content={'detail': 'internal server error'}))
        raise

    for header, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    return _finalize(response)
