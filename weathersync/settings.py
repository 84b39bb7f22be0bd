# weathersync/settings.py
from __future__ import annotations
from pydantic import BaseModel, Field

class NWSConfig(BaseModel):
    base_url: str = "https://api.weather.gov"
    user_agent: str = "weathersync (ops@example.com)"
    timeout_sec: float = 30.0
    max_retries: int = 2                      # total attempts on 5xx for zone detail

class StorageConfig(BaseModel):
    db_path: str = "/data/weathersync.db"

class PoolConfig(BaseModel):
    worker_count: int = 10
    queue_capacity: int = 100

class SchedulerConfig(BaseModel):
    enabled: bool = True
    interval_sec: float = 10.0

class Observability(BaseModel):
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    metrics_enabled: bool = True
    service_name: str = "weathersync"
    build_version: str = "0.1.0"
    build_date: str = "2026-01-01"
    log_level: str = "INFO"
    log_json: bool = False

class Settings(BaseModel):
    nws: NWSConfig = Field(default_factory=NWSConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    observability: Observability = Field(default_factory=Observability)
