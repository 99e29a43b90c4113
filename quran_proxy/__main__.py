"""
Launch the proxy with uvicorn.

    python -m quran_proxy
"""

import uvicorn

from quran_proxy.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "quran_proxy.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
