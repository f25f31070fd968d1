from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

STANDARD_REDACTION_PREFIX = "***REDACTED*** Hash: "

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]


class Settings(BaseSettings):
    # Prefix marking a string as the hex object hash of a redacted sub-object
    vds_redaction_prefix: str = STANDARD_REDACTION_PREFIX
    # Default page size for iter_batched entry sources
    vds_entry_batch_size: int = Field(500, ge=1)
    vds_log_level: LogLevel = "WARNING"

    @field_validator("vds_log_level", mode="before")
    @classmethod
    def _upper_level(cls, v):
        # Accept VDS_LOG_LEVEL=debug as well as DEBUG
        return v.upper() if isinstance(v, str) else v

settings = Settings()
