"""
Configuration settings for the API.
``DB_GUARDIAN_<FIELD>`` environment variables override defaults.
"""
import os
from dataclasses import dataclass, field
from typing import List

ENV_PREFIX = "DB_GUARDIAN_"


@dataclass
class Settings:
    """API Configuration"""

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: List[str] = field(default_factory=lambda: ["*"])

    # Storage
    REPORTS_DIR: str = "./db-guardian-data/artifacts"
    RUNS_DIR: str = "./db-guardian-data/runs"

    # Signed report URLs
    URL_SECRET: str = "change-me-in-production"
    URL_TTL_MINUTES: int = 15

    def __post_init__(self):
        """Load from environment variables"""
        for key in self.__dataclass_fields__:
            env_value = os.getenv(ENV_PREFIX + key)
            if env_value is not None:
                field_type = self.__dataclass_fields__[key].type
                if field_type == bool:
                    setattr(self, key, env_value.lower() in ("true", "1", "yes"))
                elif field_type == int:
                    setattr(self, key, int(env_value))
                elif field_type == List[str]:
                    setattr(self, key, env_value.split(","))
                else:
                    setattr(self, key, env_value)


# Global settings instance
settings = Settings()
