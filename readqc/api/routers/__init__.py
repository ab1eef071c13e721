"""Route modules — collected by the app factory."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter

from . import jobs, system_health


def all_routers() -> List[APIRouter]:
    """Return every router the app serves."""
    return [jobs.router, system_health.router]
