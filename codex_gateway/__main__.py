"""Run the gateway: python -m codex_gateway"""

from __future__ import annotations

import uvicorn

from codex_gateway.config.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "codex_gateway.gateway.app:create_app",
        factory=True,
        host=settings.gateway.host,
        port=settings.gateway.port,
        log_level=settings.log.level.lower(),
    )


if __name__ == "__main__":
    main()
