"""Launch the parcel validation FastAPI server."""

import logging

import uvicorn

from parcel_validation.config import settings


def main():
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run("parcel_validation.server:app", host=settings.host, port=settings.port, reload=settings.reload)


if __name__ == "__main__":
    main()
