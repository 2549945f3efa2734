"""Run the service locally with uvicorn (``python -m room_status``)."""

import uvicorn

from .config import settings


def main() -> None:
    # Bind only to localhost by default. Use a reverse proxy to expose externally.
    uvicorn.run("room_status.main:app", host="127.0.0.1", port=settings.port)


if __name__ == "__main__":
    main()
