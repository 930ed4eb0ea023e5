# changetrack/__init__.py
from .main import create_app  # re-export the FastAPI application factory

__all__ = ["create_app"]
