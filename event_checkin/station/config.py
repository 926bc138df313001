from __future__ import annotations
from typing import Literal
from uuid import UUID
from pydantic_settings import BaseSettings
from pydantic import Field

class StationSettings(BaseSettings):
    api_base_url: str = Field("http://127.0.0.1:8000", alias="STATION_API_BASE_URL")
    event_id: UUID | None = Field(default=None, alias="STATION_EVENT_ID")

    # Operator bearer token, or a delegated dashboard grant for door staff
    bearer_token: str | None = Field(default=None, alias="STATION_BEARER_TOKEN")
    access_token: str | None = Field(default=None, alias="STATION_ACCESS_TOKEN")

    # Camera
    camera_index: int = Field(default=0, alias="STATION_CAMERA_INDEX")
    rear_camera_index: int | None = Field(default=None, alias="STATION_REAR_CAMERA_INDEX")
    facing_mode: Literal["environment", "user"] = Field("environment", alias="STATION_FACING_MODE")
    fps: float = Field(default=15.0, gt=0, alias="STATION_FPS")

    cooldown_seconds: float = Field(default=2.0, ge=0, alias="STATION_COOLDOWN_SECONDS")
    request_timeout: float = Field(default=10.0, gt=0, alias="STATION_REQUEST_TIMEOUT")

    # Optional live roster feed
    nats_urls: str | None = Field(default=None, alias="STATION_NATS_URLS")
    nats_subject_checkin: str = Field("checkins.recorded", alias="STATION_NATS_SUBJECT_CHECKIN")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"
