from __future__ import annotations

# Import routes to register them with the page blueprint
# Each module imports `bp` from app.blueprints.page
from app.blueprints.view.page import display  # noqa: E402,F401
from app.blueprints.view.page import editor  # noqa: E402,F401
