"""Application settings. Defaults live here, overrides come from CHESS_ROOMS_* environment variables."""

import os
from typing import Mapping, Optional, Self

from pydantic import BaseModel, Field

ENV_PREFIX = "CHESS_ROOMS_"


class Settings(BaseModel):
    database_url: str = "sqlite:///chess_rooms.db"
    database_echo: bool = False

    # one default for every code path that creates a ranking
    default_rating: int = Field(default=400, ge=0)

    max_chat_length: int = Field(default=500, gt=0)
    chat_history_limit: int = Field(default=50, gt=0)

    room_code_length: int = Field(default=6, gt=0)
    max_room_name_length: int = Field(default=50, gt=0, le=255)
    max_spectators_limit: int = Field(default=50, ge=0)
    open_rooms_limit: int = Field(default=10, gt=0)

    join_timeout_seconds: float = Field(default=10.0, gt=0)
    reconnect_delay_seconds: float = Field(default=3.0, ge=0)
    use_atomic_join: bool = True

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Self:
        """Pick up every field that has a matching CHESS_ROOMS_<FIELD> variable. pydantic does the type coercion."""
        environ = os.environ if environ is None else environ
        overrides = {
            name: environ[ENV_PREFIX + name.upper()]
            for name in cls.model_fields
            if ENV_PREFIX + name.upper() in environ
        }
        return cls.model_validate(overrides)
