"""ASGI entrypoint for the meal inference API."""

from meal_inference.api.app import create_app
from meal_inference.containers import build_container

app = create_app(build_container())
