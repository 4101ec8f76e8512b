from __future__ import annotations

from flask import current_app, g, request
from werkzeug.wrappers.response import Response

from app.utils.html_sanitizer import SanitizationPolicy


def frame_sources(policy: SanitizationPolicy) -> str:
    """CSP frame-src value matching the iframe domain allowlist."""
    if not policy.iframe_domain_allowlist:
        return "'none'"
    return " ".join(f"https://{domain}" for domain in policy.iframe_domain_allowlist)


def apply_security_headers(response: Response) -> Response:
    # HSTS (only meaningful over HTTPS)
    hsts_seconds = current_app.config.get("SECURITY_HSTS_SECONDS", 31536000)
    response.headers.setdefault("Strict-Transport-Security", f"max-age={hsts_seconds}; includeSubDomains")

    # Basic security headers
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    # Shared pages carry their content in the URL; never leak it to embedded origins
    response.headers.setdefault("Referrer-Policy", "no-referrer")

    # Permissions Policy - restrict dangerous browser features
    permissions_policy = current_app.config.get("SECURITY_PERMISSIONS_POLICY",
        "geolocation=(), microphone=(), camera=(), payment=(), usb=(), magnetometer=(), gyroscope=()")
    response.headers.setdefault("Permissions-Policy", permissions_policy)

    # The edit surface holds handed-off content
    if request.endpoint == "page.editor":
        response.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, private")
        response.headers.setdefault("Pragma", "no-cache")

    # CSP
    csp = current_app.config.get("SECURITY_CSP")
    if csp:
        policy = current_app.extensions["sanitization_policy"]
        csp_value = csp.replace("{frame_src}", frame_sources(policy))
        if "{nonce}" in csp_value and getattr(g, "script_nonce", None):
            csp_value = csp_value.replace("{nonce}", g.script_nonce)
        response.headers.setdefault("Content-Security-Policy", csp_value)

    return response
