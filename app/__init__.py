from __future__ import annotations

import os
from datetime import timedelta
from typing import Any, Dict

import click
import structlog
from flask import Flask, jsonify, g, render_template, request
from markupsafe import Markup

from app.config import Config
from app.extensions import csrf, limiter
from app.logging_config import configure_logging
from app.security import apply_security_headers
from app.services.handoff import DEFAULT_VIEW_ROUTE, begin_view
from app.services.transport import TransportEnvelope
from app.utils.html_sanitizer import SanitizationFailure, SanitizationPolicy, sanitize_html


def create_app(config_overrides: Dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=False)

    # Load config
    app.config.from_object(Config())
    if config_overrides:
        app.config.update(config_overrides)

    app.permanent_session_lifetime = timedelta(minutes=int(app.config.get("SESSION_LIFETIME_MINUTES", 30)))

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))
    logger = structlog.get_logger("app")

    # One immutable policy per application, passed explicitly to every sanitize call
    policy = SanitizationPolicy.from_config(app.config)
    app.extensions["sanitization_policy"] = policy

    # Init extensions
    csrf.init_app(app)
    limiter.init_app(app)

    @app.context_processor
    def template_context() -> dict:
        return {
            "site_name": app.config.get("SITE_NAME", "hashpage"),
            "script_nonce": getattr(g, "script_nonce", ""),
        }

    # Register template filter for HTML sanitization
    @app.template_filter('safe_html')
    def safe_html_filter(html_content: str) -> Markup:
        """Template filter to sanitize HTML content for safe rendering."""
        return Markup(sanitize_html(html_content or "", policy))

    # Request context enrichment for logging
    @app.before_request
    def add_request_context() -> None:
        g.request_id = request.headers.get("X-Request-ID") or os.urandom(8).hex()
        # Per-request script nonce for CSP-compliant inline allowances (used on script tags)
        g.script_nonce = os.urandom(16).hex()
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=g.request_id, path=request.path)

    # Security headers
    @app.after_request
    def set_headers(resp):
        return apply_security_headers(resp)

    # Blueprints
    from app.blueprints.page import bp as page_bp
    from app.blueprints.api.transport import bp as api_bp

    app.register_blueprint(page_bp)
    app.register_blueprint(api_bp)

    # Health route
    @app.get("/health")
    def health():
        return jsonify({"status": "ok"}), 200

    # Fail closed: never fall back to unsanitized markup
    @app.errorhandler(SanitizationFailure)
    def content_unavailable(e):
        logger.error("content_unavailable", error=str(e))
        if request.path.startswith("/api") or request.args.get("format") == "json":
            return jsonify({"error": "content_unavailable", "message": "content unavailable"}), 422
        return render_template("unavailable.html"), 422

    # Error handlers (JSON)
    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"error": "bad_request", "message": str(e)}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "not_found", "message": "resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "method_not_allowed", "message": "method not allowed"}), 405

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"error": "too_large", "message": "request body too large"}), 413

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": "rate_limited", "message": "too many requests"}), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "server_error", "message": "internal server error"}), 500

    # CLI: sanitize a file with the configured policy
    @app.cli.command("sanitize")
    @click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
    def sanitize_command(source) -> None:
        try:
            click.echo(sanitize_html(source.read(), policy))
        except SanitizationFailure as exc:
            raise click.ClickException(str(exc)) from exc

    # CLI: build a shareable link for a file
    @app.cli.command("share-url")
    @click.argument("source", type=click.File("r", encoding="utf-8"), default="-")
    @click.option("--title", default="")
    @click.option("--description", default="")
    @click.option("--main-image", default="")
    @click.option("--hide-edit-button", is_flag=True, default=False)
    @click.option("--route", default=DEFAULT_VIEW_ROUTE, show_default=True, help="Display route")
    @click.option("--base-url", default="", help="Prefix such as https://example.com")
    def share_url_command(
        source, title: str, description: str, main_image: str, hide_edit_button: bool, route: str, base_url: str
    ) -> None:
        envelope = TransportEnvelope(
            content=source.read(),
            title=title,
            description=description,
            main_image=main_image,
            hide_edit_button=hide_edit_button,
        )
        click.echo(base_url.rstrip("/") + begin_view(envelope, route))

    return app
