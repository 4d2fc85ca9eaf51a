"""API routers for the sponsorship slot service."""

from app.routers import admin_sponsorship, checkout, home, sponsorship_requests  # noqa: F401
