from fastapi import Request


def _first_forwarded(value: str) -> str:
    return value.split(",")[0].strip()


def get_base_url(request: Request) -> str:
    """Scheme + authority the client used to reach us, e.g. ``https://items.example.com``.

    Behind a reverse proxy X-Forwarded-Proto / X-Forwarded-Host win, unless
    TRUST_PROXY_HEADERS is switched off.
    """
    scheme = request.url.scheme
    host = request.headers.get("host") or request.url.netloc

    if request.app.state.settings.trust_proxy_headers:
        forwarded_proto = _first_forwarded(request.headers.get("x-forwarded-proto") or "")
        forwarded_host = _first_forwarded(request.headers.get("x-forwarded-host") or "")
        if forwarded_proto:
            scheme = forwarded_proto.lower()
        if forwarded_host:
            host = forwarded_host

    return f"{scheme}://{host}"
