import logging

import uvicorn

from xihi.core.config import get_settings
from xihi.main import create_app


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(settings),
        host=settings.www_host,
        port=settings.www_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
