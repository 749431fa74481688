"""
Dependency wiring for the FastAPI app.

Everything hangs off ``app.state`` so each application instance owns its
own database handle.
"""
from fastapi import Request

from wastebin.config import Settings
from wastebin.database import ConnectionManager
from wastebin.lifecycle import LifecycleEvaluator
from wastebin.store import PasteStore
from wastebin.validation import ContentValidator


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_connections(request: Request) -> ConnectionManager:
    return request.app.state.connections


def get_store(request: Request) -> PasteStore:
    return request.app.state.store


def get_validator(request: Request) -> ContentValidator:
    return request.app.state.validator


def get_lifecycle(request: Request) -> LifecycleEvaluator:
    return request.app.state.lifecycle
