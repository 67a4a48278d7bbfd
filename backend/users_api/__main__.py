"""Run the API with uvicorn: `python -m users_api`."""

import uvicorn

from users_api.config import settings


def main() -> None:
    uvicorn.run(
        "users_api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
