"""API v1 routers."""

from . import cron, flows, onboardings, portal, worker_callbacks

__all__ = [
    "cron",
    "flows",
    "onboardings",
    "portal",
    "worker_callbacks",
]
