"""ASGI entry point: `uvicorn api:app` or `python api.py`"""

import uvicorn
from config import ApplicationConfig
from image_studio.api.app import create_app

app = create_app(ApplicationConfig)


def run() -> None:
    # Queue workers and the status tracker are per process
    uvicorn.run(
        app,
        host=ApplicationConfig.API_HOST,
        port=ApplicationConfig.API_PORT,
        workers=1,
        log_level=ApplicationConfig.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
