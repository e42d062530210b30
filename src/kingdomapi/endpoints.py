"""Endpoint paths of the Kingdom Collective unified API.

Grouped by product area. Paths containing ``:id`` are templates; use
:func:`with_id` to fill them in.
"""

from __future__ import annotations


class ApiEndpoints:
    """Namespace of endpoint path constants."""

    HEALTH = "/health"
    METRICS = "/metrics"

    # Authentication
    AUTH_REGISTER = "/auth/register"
    AUTH_LOGIN = "/auth/login"
    AUTH_LOGOUT = "/auth/logout"
    AUTH_REFRESH = "/auth/refresh"
    AUTH_FORGOT_PASSWORD = "/auth/forgot-password"
    AUTH_RESET_PASSWORD = "/auth/reset-password"
    AUTH_ME = "/auth/me"

    # Users
    USERS_PROFILE = "/users/profile"
    USERS_PREFERENCES = "/users/preferences"
    USERS_SETTINGS = "/users/settings"
    USERS_DELETE_ACCOUNT = "/users/account"

    # Content generation (Kingdom Studios)
    CONTENT_GENERATE = "/content/generate"
    CONTENT_HISTORY = "/content/history"
    CONTENT_SAVE = "/content/save"
    CONTENT_TEMPLATES = "/content/templates"
    CONTENT_SCHEDULE = "/content/schedule"
    CONTENT_REFINE = "/content/refine"
    CONTENT_FAVORITES = "/content/favorites"

    # Video editing (Kingdom Clips)
    CLIPS_UPLOAD = "/clips/upload"
    CLIPS_PROCESS = "/clips/process"
    CLIPS_EXPORT = "/clips/export"
    CLIPS_HISTORY = "/clips/history"

    # Voice and journaling (Kingdom Voice)
    VOICE_RECORD = "/voice/record"
    VOICE_TRANSCRIBE = "/voice/transcribe"
    VOICE_JOURNAL = "/voice/journal"
    VOICE_PRAYER = "/voice/prayer"

    # Products (Kingdom Launchpad)
    PRODUCTS = "/products"
    PRODUCT = "/products/:id"
    PRODUCTS_SYNC = "/products/sync"

    # Community (Kingdom Circle)
    COMMUNITY_POSTS = "/community/posts"
    COMMUNITY_MENTORS = "/community/mentors"
    COMMUNITY_GROUPS = "/community/groups"
    COMMUNITY_EVENTS = "/community/events"

    # Photography (Kingdom Lens)
    LENS_UPLOAD = "/lens/upload"
    LENS_FILTERS = "/lens/filters"
    LENS_PORTFOLIO = "/lens/portfolio"

    # Analytics
    ANALYTICS_OVERVIEW = "/analytics/overview"
    ANALYTICS_TRACK = "/analytics/track"

    # Payments
    PAYMENTS_CREATE_INTENT = "/payments/create-intent"
    PAYMENTS_SUBSCRIPTIONS = "/payments/subscriptions"

    # Files
    FILES_UPLOAD = "/files/upload"
    FILES_LIST = "/files/list"


def with_id(template: str, resource_id: str | int) -> str:
    """Substitute *resource_id* for the ``:id`` placeholder in *template*.

    Raises:
        ValueError: If *template* has no ``:id`` placeholder.
    """
    if ":id" not in template:
        raise ValueError(f"Endpoint {template!r} has no :id placeholder")
    return template.replace(":id", str(resource_id))
