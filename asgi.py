"""
asgi.py -- Application assembly and server entry point for the Cogito API.

Run with:  uvicorn asgi:app --reload
           python asgi.py            (binds HOST:PORT from settings)
"""

import uvicorn

from api.main import app
from core.config import get_settings

__all__ = ["app"]


def main() -> None:
    settings = get_settings()
    uvicorn.run("asgi:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
