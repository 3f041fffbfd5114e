from __future__ import annotations

import logging

import uvicorn

from chatbot_app.config import settings


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("chatbot_app.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    main()
