# ============================================================
# safepass/config.py  —  environment-driven settings
# ============================================================
#
# ENV VARS
# ────────
#  SAFEPASS_STORE        — supabase | firebase | memory (default supabase)
#  SUPABASE_URL          — https://xxxx.supabase.co
#  SUPABASE_KEY          — service_role secret key (NOT the anon key)
#  SUPABASE_TABLE        — node table (default safepass_nodes)
#  FIREBASE_CREDENTIALS  — service-account JSON, inline or a file path
#  FIREBASE_DATABASE_URL — https://xxxx.firebasedatabase.app
#  SAFEPASS_POLL_SECONDS — supabase change-poll interval (default 2)
#  REDIS_HOST  REDIS_PORT
#  SAFEPASS_REDIS        — set to 0 to skip Redis (in-memory denylist)
#  JWT_SECRET  ACCESS_TOKEN_EXPIRE_MINUTES
#  SAFEPASS_TIMEZONE     — zone used for "today" partitions (default UTC)
#  LOG_LEVEL
# ============================================================

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

STORE_BACKENDS = ("supabase", "firebase", "memory")


@dataclass
class Settings:
    store_backend: str = "supabase"
    supabase_url:  str = ""
    supabase_key:  str = ""
    supabase_table: str = "safepass_nodes"
    firebase_credentials:  str = ""
    firebase_database_url: str = ""
    poll_seconds: float = 2.0

    redis_host: str = "localhost"
    redis_port: int = 6379
    # False skips Redis entirely (in-memory token denylist)
    use_redis: bool = True

    jwt_secret: str = "change_me_in_production_2026"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 120

    timezone:  str = "UTC"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            store_backend=os.getenv("SAFEPASS_STORE", "supabase").strip().lower(),
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_key=os.getenv("SUPABASE_KEY", ""),
            supabase_table=os.getenv("SUPABASE_TABLE", "safepass_nodes"),
            firebase_credentials=os.getenv("FIREBASE_CREDENTIALS", ""),
            firebase_database_url=os.getenv("FIREBASE_DATABASE_URL", ""),
            poll_seconds=float(os.getenv("SAFEPASS_POLL_SECONDS", "2")),
            redis_host=os.getenv("REDIS_HOST", "localhost"),
            redis_port=int(os.getenv("REDIS_PORT", "6379")),
            use_redis=os.getenv("SAFEPASS_REDIS", "1") != "0",
            jwt_secret=os.getenv("JWT_SECRET", "change_me_in_production_2026"),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "120")),
            timezone=os.getenv("SAFEPASS_TIMEZONE", "UTC"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.store_backend not in STORE_BACKENDS:
            raise RuntimeError(
                f"SAFEPASS_STORE must be one of {', '.join(STORE_BACKENDS)}, "
                f"got {self.store_backend!r}"
            )
        if self.store_backend == "supabase" and (not self.supabase_url or not self.supabase_key):
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_KEY environment variables are required.\n"
                "Set them before starting the server:\n"
                "  export SUPABASE_URL=https://xxxx.supabase.co\n"
                "  export SUPABASE_KEY=your_service_role_key\n"
                "or run against the in-process store with SAFEPASS_STORE=memory"
            )
        if self.store_backend == "firebase" and not self.firebase_database_url:
            raise RuntimeError(
                "FIREBASE_DATABASE_URL is required when SAFEPASS_STORE=firebase"
            )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
