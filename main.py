"""Run the GoBus API under uvicorn."""

import uvicorn

from gobus_booking_platform.config import settings


def main():
    uvicorn.run(
        "gobus_booking_platform.main:app",
        host="0.0.0.0",
        port=3000,
        reload=settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    main()
