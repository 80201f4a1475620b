import logging
import sys
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from core.environment import (
    get_database_url,
    get_env_bool,
    get_env_float,
    get_env_int,
    get_env_list,
    get_env_str,
)
from services.error_types import ConfigurationError

KB = 1024
MB = 1024 * 1024

# Bounds on the upload limit an operator may configure
MIN_CONFIGURABLE_FILE_SIZE = 1 * MB
MAX_CONFIGURABLE_FILE_SIZE = 100 * MB
DEFAULT_MAX_FILE_SIZE = 25 * MB

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
]


def setup_logging(debug: Optional[bool] = None) -> logging.Logger:
    """Configure application logging"""
    if debug is None:
        debug = get_env_bool("DEBUG")
    log_level = logging.DEBUG if debug else logging.INFO

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logger = logging.getLogger('battery_builds')
    logger.setLevel(log_level)

    # Suppress noisy third-party loggers
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('openai').setLevel(logging.WARNING)

    return logger


class FileUploadConfig(BaseModel):
    """Upload limits and the messages shown when they are violated"""
    allowed_types: List[str] = Field(default_factory=lambda: ["application/pdf"])
    max_size_bytes: int
    min_size_bytes: int
    invalid_type_message: str
    size_limit_exceeded_message: str
    size_too_small_message: str
    upload_failed_message: str = "Failed to upload file. Please try again."


class ManualJConfig(BaseModel):
    """Explicit configuration for the calculation chain and its host process"""
    openai_api_key: Optional[str] = None
    vision_model: str = Field("gpt-4o", min_length=1)
    reasoning_model: str = Field("gpt-4o", min_length=1)
    vision_temperature: float = Field(0.4, ge=0.0, le=2.0)
    reasoning_temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(4096, ge=256, le=32768)
    request_timeout_seconds: float = Field(120.0, gt=0)
    max_retries: int = Field(2, ge=0, le=5)
    retry_base_delay_seconds: float = Field(1.0, ge=0)
    min_response_chars: int = Field(2, ge=1)
    max_file_size: int = Field(DEFAULT_MAX_FILE_SIZE)
    min_file_size: int = Field(1 * KB, ge=1)
    database_url: str = "sqlite:///./battery_builds.db"
    environment: str = Field("development", pattern="^(development|test|production)$")
    allowed_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    debug: bool = False

    @field_validator('max_file_size')
    @classmethod
    def validate_max_file_size(cls, v):
        if v < MIN_CONFIGURABLE_FILE_SIZE:
            raise ValueError(f"File size must be at least {MIN_CONFIGURABLE_FILE_SIZE} bytes")
        if v > MAX_CONFIGURABLE_FILE_SIZE:
            raise ValueError(f"File size must not exceed {MAX_CONFIGURABLE_FILE_SIZE} bytes")
        return v

    @field_validator('min_file_size')
    @classmethod
    def validate_min_below_max(cls, v, info):
        max_size = info.data.get('max_file_size')
        if max_size is not None and v >= max_size:
            raise ValueError(f"min_file_size {v} must be below max_file_size {max_size}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def require_api_key(self) -> str:
        """Return the OpenAI key or fail fast when it is missing"""
        if not self.openai_api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY environment variable is missing or blank",
                details={"missing": ["OPENAI_API_KEY"]},
            )
        return self.openai_api_key

    def file_upload_config(self) -> FileUploadConfig:
        max_size_mb = self.max_file_size // MB
        min_size_kb = max(1, self.min_file_size // KB)
        return FileUploadConfig(
            max_size_bytes=self.max_file_size,
            min_size_bytes=self.min_file_size,
            invalid_type_message="Only PDF files are allowed",
            size_limit_exceeded_message=f"File size must be less than {max_size_mb} MB",
            size_too_small_message=f"File size must be at least {min_size_kb} KB",
        )


def load_config(**overrides) -> ManualJConfig:
    """
    Build a validated ManualJConfig from the environment.

    Keyword overrides take precedence over environment variables.

    Raises:
        ConfigurationError: When any value fails validation
    """
    values = {
        "openai_api_key": get_env_str("OPENAI_API_KEY"),
        "vision_model": get_env_str("OPENAI_VISION_MODEL", "gpt-4o"),
        "reasoning_model": get_env_str("OPENAI_REASONING_MODEL", "gpt-4o"),
        "max_output_tokens": get_env_int("OPENAI_MAX_OUTPUT_TOKENS", 4096),
        "request_timeout_seconds": get_env_float("OPENAI_TIMEOUT", 120.0),
        "max_retries": get_env_int("MANUAL_J_MAX_RETRIES", 2),
        "retry_base_delay_seconds": get_env_float("MANUAL_J_RETRY_DELAY", 1.0),
        "max_file_size": get_env_int("MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE),
        "min_file_size": get_env_int("MIN_FILE_SIZE", 1 * KB),
        "database_url": get_database_url(),
        "environment": (get_env_str("ENV", "development") or "development").lower(),
        "allowed_origins": get_env_list("ALLOWED_ORIGINS", default=list(DEFAULT_ALLOWED_ORIGINS)),
        "debug": get_env_bool("DEBUG"),
    }
    values.update(overrides)

    try:
        return ManualJConfig(**values)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            field_path = " -> ".join(str(x) for x in error['loc'])
            problems.append(f"{field_path}: {error['msg']}")
        raise ConfigurationError(
            "Environment validation failed",
            details={"problems": problems},
        ) from e
