from __future__ import annotations

import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./pokerledger.db"
    log_level: str = "INFO"
    undo_window_seconds: int = 30

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("POKERLEDGER_DATABASE_URL", os.getenv("DATABASE_URL", cls.database_url)),
            log_level=os.getenv("POKERLEDGER_LOG_LEVEL", cls.log_level).upper(),
            undo_window_seconds=int(os.getenv("POKERLEDGER_UNDO_WINDOW_SECONDS", str(cls.undo_window_seconds))),
        )


settings = Settings.from_env()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
