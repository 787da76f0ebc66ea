"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in practiceflow/__init__.py with no
default limits; this module applies granular limits per route category.

Usage:
    from practiceflow.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# Blueprints that mutate workflow state
_WRITE_BLUEPRINTS = ("service_workflow", "document_slots", "service_requests")
# Mostly-read blueprints
_READ_BLUEPRINTS = ("services",)


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP, configurable):
        - Workflow / slot / request endpoints: WORKFLOW_WRITE_LIMIT (60/minute)
        - Service record endpoints:            READ_LIMIT (200/minute)
        - Health check:                        exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    write_limit = app.config.get("WORKFLOW_WRITE_LIMIT", "60/minute")
    read_limit = app.config.get("READ_LIMIT", "200/minute")

    for bp_name in _WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(write_limit)(bp)

    for bp_name in _READ_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(read_limit)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: write: %s, read: %s", write_limit, read_limit)
