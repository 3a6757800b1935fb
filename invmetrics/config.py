from __future__ import annotations
import os
from typing import Literal
from pydantic import BaseModel

StoreBackend = Literal["memory", "sql", "redis"]

class Settings(BaseModel):
    service_name: str = os.getenv("METRICS_SERVICE_NAME", "invitation-metrics")
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    port: int = int(os.getenv("PORT", "3000"))

    store_backend: StoreBackend = os.getenv("METRICS_STORE", "sql")
    database_url: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///invmetrics.sqlite3")
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    redis_prefix: str = os.getenv("METRICS_REDIS_PREFIX", "invm")

    # Simulated upstream latency of the synthetic invitation source.
    source_delay_seconds: float = float(os.getenv("METRICS_SOURCE_DELAY_SECONDS", "0.1"))

    invitations_collection: str = "invitations"
    rollups_collection: str = "daily_rollups"

settings = Settings()
