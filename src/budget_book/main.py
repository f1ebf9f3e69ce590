import os

import uvicorn

from budget_book.app import app
from budget_book.core import settings
from budget_book.logger import get_logging_config

__all__ = ["app", "main"]

DEFAULT_PORT = 8000


def main() -> None:
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=settings.get_env_int("PORT", DEFAULT_PORT, min_value=1),
        log_config=get_logging_config(),
    )


if __name__ == "__main__":
    main()
