from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env if present
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


class Config:
    SECRET_KEY: str = os.getenv("SECRET_KEY", os.urandom(32).hex())

    SITE_NAME = os.getenv("SITE_NAME", "hashpage")

    # Sessions carry the one-shot edit handoff, so keep them short-lived
    SESSION_COOKIE_HTTPONLY = True   # Prevent XSS access to session cookies
    SESSION_COOKIE_SECURE = os.getenv("FLASK_ENV", "production") == "production"  # HTTPS only in production
    SESSION_COOKIE_SAMESITE = "Lax"  # The edit handoff is a same-site form post followed by a redirect
    SESSION_COOKIE_PATH = "/"
    SESSION_LIFETIME_MINUTES = int(os.getenv("SESSION_LIFETIME_MINUTES", "30"))

    # Total serialized size of handoff entries kept in the session cookie (browser limit is 4093
    # bytes after signing and base64); whatever does not fit travels in the redirect URL
    HANDOFF_MAX_BYTES = int(os.getenv("HANDOFF_MAX_BYTES", "2400"))

    # Request body limit (rendered pages are posted back as fragments)
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(2 * 1024 * 1024)))

    # Rate limiting
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "100 per minute")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")

    # JSON API posts send the CSRF token in a header
    WTF_CSRF_HEADERS = ["X-CSRFToken", "X-CSRF-Token"]

    # Sanitization policy (comma-separated lists; empty keeps the default)
    SANITIZER_ALLOWED_TAGS_EXTRA = os.getenv("SANITIZER_ALLOWED_TAGS_EXTRA", "")
    SANITIZER_ALLOWED_ATTRIBUTES_EXTRA = os.getenv("SANITIZER_ALLOWED_ATTRIBUTES_EXTRA", "")
    SANITIZER_FORBIDDEN_ATTRIBUTES = os.getenv("SANITIZER_FORBIDDEN_ATTRIBUTES", "")
    SANITIZER_ALLOWED_URI_PATTERN = os.getenv("SANITIZER_ALLOWED_URI_PATTERN", "")
    SANITIZER_IFRAME_DOMAINS = os.getenv("SANITIZER_IFRAME_DOMAINS", "")

    # Security headers
    # {nonce} is substituted per request, {frame_src} with the iframe allowlist
    SECURITY_CSP = (
        "default-src 'self'; "
        # Scripts: use nonce and strict-dynamic; omit 'self' to avoid browser warning
        "script-src 'nonce-{nonce}' 'strict-dynamic'; "
        # Shared pages carry inline styles and remote images
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' http: https:; "
        "frame-src {frame_src}; "
        "object-src 'none'; "
        "base-uri 'self'; "
        "form-action 'self'; "
        "frame-ancestors 'none'"
    )
    SECURITY_HSTS_SECONDS = 31536000

    # Permissions Policy - embedded players may go fullscreen, nothing else
    SECURITY_PERMISSIONS_POLICY = (
        "geolocation=(), microphone=(), camera=(), payment=(), usb=(), "
        "magnetometer=(), gyroscope=(), accelerometer=(), ambient-light-sensor=(), "
        "midi=(), sync-xhr=()"
    )

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Flask env
    ENV = os.getenv("FLASK_ENV", "production")
    DEBUG = ENV != "production"
