"""Run the followdeck API with uvicorn"""

import uvicorn

from followdeck.app import create_app
from followdeck.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
