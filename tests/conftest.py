"""Test configuration and fixtures for the hashpage application."""

import re
from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient

from app import create_app
from app.services.transport import MemoryBuffer
from app.utils.html_sanitizer import SanitizationPolicy


@pytest.fixture
def app() -> Generator[Flask, None, None]:
    """Create and configure a test Flask application."""
    test_config = {
        'TESTING': True,
        'WTF_CSRF_ENABLED': False,  # Disable CSRF for testing
        'SECRET_KEY': 'test-secret-key',
        'SESSION_COOKIE_SECURE': False,
        'RATELIMIT_ENABLED': False,  # Disable rate limiting for tests
        'LOG_LEVEL': 'WARNING',
    }

    app = create_app(test_config)

    with app.app_context():
        yield app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    """Create a test client."""
    return app.test_client()


@pytest.fixture
def runner(app: Flask):
    """Create a test CLI runner."""
    return app.test_cli_runner()


@pytest.fixture
def buffer() -> MemoryBuffer:
    """An empty one-shot buffer."""
    return MemoryBuffer()


@pytest.fixture
def policy() -> SanitizationPolicy:
    """The default sanitization policy."""
    return SanitizationPolicy()


@pytest.fixture
def csrf_client(app: Flask) -> FlaskClient:
    """A client for an application with CSRF protection enabled."""
    app.config['WTF_CSRF_ENABLED'] = True
    return app.test_client()


def extract_csrf_token(html: str) -> str | None:
    """Pull the CSRF token out of a rendered page."""
    match = re.search(r'name="csrf-token" content="([^"]*)"', html)
    return match.group(1) if match else None
