"""WSGI proxy middleware and caller-address helpers."""

from __future__ import annotations

from flask import Flask, has_request_context, request
from werkzeug.middleware.proxy_fix import ProxyFix


def init_app(app: Flask) -> None:
    """Apply :class:`werkzeug.middleware.proxy_fix.ProxyFix` when enabled.

    Parameters
    ----------
    app: flask.Flask
        Application whose WSGI pipeline should respect upstream proxy headers.

    Notes
    -----
    Controlled by ``USE_PROXYFIX`` (defaults to ``True``) and
    ``PROXY_TRUSTED_HOPS`` (defaults to ``1``). The issuing IP recorded on
    refresh tokens is only as trustworthy as this hop count.
    """
    if not app.config.get("USE_PROXYFIX", True):
        return
    hops = int(app.config.get("PROXY_TRUSTED_HOPS", 1))
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops)


def client_ip() -> str | None:
    """Return the caller address for the current request, if any."""
    if not has_request_context():
        return None
    return request.remote_addr or None
