"""ASGI entrypoint for the consistency engine API."""

from consistency_engine.api.app import create_app
from consistency_engine.containers import build_container

app = create_app(build_container())
