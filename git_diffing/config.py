from __future__ import annotations
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    git: str = "git"
    log_level: str = "WARNING"
    switches: list[str] = Field(default_factory=list)


def load_settings() -> Settings:
    return Settings(
        git=os.getenv("GIT_DIFFING_GIT", "git"),
        log_level=os.getenv("GIT_DIFFING_LOG_LEVEL", "WARNING").upper(),
        switches=os.getenv("GIT_DIFFING_SWITCHES", "").split(),
    )
