from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class Config:
    secret_key: str = "change-me"
    database_url: str = "sqlite:///dev.db"
    store_timeout_seconds: float = 3.0  # per-call deadline for MenuStore operations
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Config:
        return cls(
            secret_key=os.getenv("SECRET_KEY", "change-me"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///dev.db"),
            store_timeout_seconds=float(os.getenv("STORE_TIMEOUT_SECONDS", "3.0")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def override(self, d: dict):
        for k, v in d.items():
            if hasattr(self, k):
                setattr(self, k, v)

    def to_flask_dict(self):
        return {
            "SECRET_KEY": self.secret_key,
            "DATABASE_URL": self.database_url,
            "STORE_TIMEOUT_SECONDS": self.store_timeout_seconds,
            "LOG_LEVEL": self.log_level,
        }
