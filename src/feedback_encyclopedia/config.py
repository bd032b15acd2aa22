"""
Configuration management for Feedback Encyclopedia
"""

import logging
import os
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, validator
from pydantic_settings import BaseSettings


GOOGLE_SHEETS_EXPORT_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv"
DEFAULT_SHEET_ID = "1kbOoBSrI1yHj0yEtexhFA6H_QuJL2IkzXFh9uaCSKsQ"

# Environment variables consulted for the ranking credential, per provider
PROVIDER_KEY_ENV = {
    "gemini": ["GEMINI_API_KEY", "GOOGLE_API_KEY", "AI_API_KEY"],
    "openrouter": ["OPENROUTER_API_KEY", "AI_API_KEY"],
    "ollama": [],
}


def _validate_http_url(v: str, label: str) -> str:
    parsed = urlparse(v)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"{label} must be a valid URL with scheme and domain")
    if parsed.scheme not in ["http", "https"]:
        raise ValueError(f"{label} must use http or https protocol")
    return v


class SourceConfig(BaseModel):
    """Corpus source (published spreadsheet) configuration"""
    sheet_id: str = Field(default=DEFAULT_SHEET_ID)
    csv_url: Optional[str] = Field(default=None)
    timeout: float = Field(default=15.0, ge=1.0, le=120.0)
    user_agent: str = Field(default="Feedback-Encyclopedia/1.0")

    @validator("sheet_id")
    def validate_sheet_id(cls, v):
        """Validate spreadsheet id"""
        if not v or not re.match(r"^[A-Za-z0-9_-]+$", v):
            raise ValueError("Sheet id must be a non-empty string of letters, digits, '-' or '_'")
        return v

    @validator("csv_url")
    def validate_csv_url(cls, v):
        """Validate explicit CSV URL"""
        if not v:
            return v
        return _validate_http_url(v, "CSV URL")

    @property
    def resolved_url(self) -> str:
        """CSV URL to fetch, derived from the sheet id unless set explicitly"""
        return self.csv_url or GOOGLE_SHEETS_EXPORT_URL.format(sheet_id=self.sheet_id)


class AIConfig(BaseModel):
    """Relevance ranking service configuration"""
    provider: str = Field(default="gemini")
    model: Optional[str] = Field(default=None)
    api_key: Optional[str] = Field(default=None)
    base_url: Optional[str] = Field(default=None)
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    timeout: float = Field(default=30.0, ge=1.0, le=300.0)
    top_k: int = Field(default=5, ge=1, le=20)

    @validator("provider")
    def validate_provider(cls, v):
        """Validate AI provider"""
        allowed_providers = list(PROVIDER_KEY_ENV)
        if v not in allowed_providers:
            raise ValueError(f"AI provider must be one of: {allowed_providers}")
        return v

    @validator("api_key")
    def validate_api_key(cls, v):
        """Reject obviously truncated keys"""
        if v and len(v.strip()) < 10:
            raise ValueError("AI API key appears to be too short")
        return v

    @validator("base_url")
    def validate_base_url(cls, v):
        """Validate AI base URL format"""
        if not v:
            return v
        return _validate_http_url(v, "AI base URL").rstrip("/")

    def resolve_api_key(self) -> Optional[str]:
        """Configured key, falling back to the provider's environment variables"""
        if self.api_key:
            return self.api_key
        for name in PROVIDER_KEY_ENV.get(self.provider, []):
            value = os.getenv(name)
            if value:
                return value
        return None

    @property
    def requires_api_key(self) -> bool:
        return bool(PROVIDER_KEY_ENV.get(self.provider))


class APIConfig(BaseModel):
    """API server configuration"""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    debug: bool = Field(default=False)
    docs_url: str = Field(default="/docs")
    redoc_url: str = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @validator("host")
    def validate_host(cls, v):
        """Validate host address"""
        if not v:
            raise ValueError("API host cannot be empty")

        if v not in ["0.0.0.0", "127.0.0.1", "localhost"] and not re.match(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$", v):
            # Allow domain names
            if not re.match(r"^[a-zA-Z0-9.-]+$", v):
                raise ValueError("Host must be a valid IP address, domain name, or 'localhost'")

        return v

    @validator("docs_url", "redoc_url", "openapi_url")
    def validate_url_paths(cls, v):
        """Validate URL paths"""
        if not v.startswith("/"):
            raise ValueError("URL paths must start with '/'")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = Field(default="INFO")
    format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    file: Optional[str] = Field(default=None)
    max_bytes: int = Field(default=10485760, ge=1024, le=1073741824)  # 1KB to 1GB
    backup_count: int = Field(default=5, ge=0, le=50)

    @validator("level")
    def validate_level(cls, v):
        """Validate logging level"""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of: {allowed_levels}")
        return v.upper()


class Config(BaseSettings):
    """Main configuration class"""

    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    source: SourceConfig = Field(default_factory=SourceConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    app_name: str = Field(default="Feedback Encyclopedia")
    app_version: str = Field(default="1.0.0")
    description: str = Field(default="Problem/solution feedback lookup with AI-assisted ranking")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_nested_delimiter = "__"
        validate_assignment = True
        extra = "ignore"

    @validator("environment")
    def validate_environment(cls, v):
        """Validate environment setting"""
        allowed = ["development", "testing", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    def validate_startup(self) -> List[str]:
        """
        Validate configuration at startup.

        Returns:
            List of messages prefixed with CRITICAL/ERROR/WARNING/INFO
        """
        issues = []

        if self.environment == "production":
            if self.debug or self.api.debug:
                issues.append("WARNING: Debug mode should be disabled in production")
            if "*" in self.api.cors_origins:
                issues.append("WARNING: Wildcard CORS origin should not be used in production")

        if self.ai.requires_api_key and not self.ai.resolve_api_key():
            env_names = " or ".join(PROVIDER_KEY_ENV[self.ai.provider])
            issues.append(
                f"WARNING: No API key configured for AI provider '{self.ai.provider}' "
                f"(set {env_names}). AI ranking will be unavailable."
            )

        if self.logging.file:
            try:
                log_path = Path(self.logging.file)
                log_path.parent.mkdir(parents=True, exist_ok=True)
                test_file = log_path.parent / ".write_test"
                test_file.touch()
                test_file.unlink()
            except (OSError, PermissionError):
                issues.append(f"ERROR: Cannot write to log file location: {self.logging.file}")

        if not self.source.csv_url and self.source.sheet_id == DEFAULT_SHEET_ID:
            issues.append("INFO: Using the default feedback spreadsheet.")

        return issues

    def validate_and_fail_on_errors(self) -> None:
        """Validate configuration and raise exception if critical errors found"""
        issues = self.validate_startup()

        errors = [issue for issue in issues if issue.startswith("ERROR") or issue.startswith("CRITICAL")]

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(errors)
            raise ValueError(error_msg)

    def get_validation_summary(self) -> Dict[str, List[str]]:
        """Get validation summary categorized by severity"""
        issues = self.validate_startup()

        return {
            "critical": [issue for issue in issues if issue.startswith("CRITICAL")],
            "errors": [issue for issue in issues if issue.startswith("ERROR")],
            "warnings": [issue for issue in issues if issue.startswith("WARNING")],
            "info": [issue for issue in issues if issue.startswith("INFO")]
        }

    @classmethod
    def from_file(cls, config_path: str) -> "Config":
        """Load configuration from YAML file"""
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_file, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return self.dict()

    def save_to_file(self, config_path: str) -> None:
        """Save configuration to YAML file"""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, allow_unicode=True)


# Global configuration instance
_config: Optional[Config] = None


def get_config(validate_startup: bool = False) -> Config:
    """
    Get the global configuration instance

    Args:
        validate_startup: If True, run startup validation and fail on errors
    """
    global _config
    if _config is None:
        _config = Config()

        if validate_startup:
            _config.validate_and_fail_on_errors()

    return _config


def set_config(config: Optional[Config]) -> None:
    """Set (or reset, with None) the global configuration instance"""
    global _config
    _config = config


def load_config(config_path: Optional[str] = None, validate_startup: bool = False) -> Config:
    """
    Load configuration from file or environment

    Args:
        config_path: Path to configuration file (optional)
        validate_startup: If True, run startup validation and fail on errors
    """
    if config_path:
        config = Config.from_file(config_path)
    else:
        config = Config()

    if validate_startup:
        config.validate_and_fail_on_errors()

    set_config(config)
    return config


DEFAULT_CONFIG_PATHS = [
    "config/config.yaml",
    "config.yaml",
    os.path.expanduser("~/.feedback-encyclopedia/config.yaml"),
]


def auto_load_config(validate_startup: bool = False) -> Config:
    """Load configuration from the first default path that exists"""
    for path in DEFAULT_CONFIG_PATHS:
        if os.path.exists(path):
            return load_config(path, validate_startup=validate_startup)

    return load_config(validate_startup=validate_startup)


def configure_logging(logging_config: Optional[LoggingConfig] = None) -> None:
    """Install root handlers according to the logging configuration"""
    logging_config = logging_config or get_config().logging

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if logging_config.file:
        handlers.append(
            RotatingFileHandler(
                logging_config.file,
                maxBytes=logging_config.max_bytes,
                backupCount=logging_config.backup_count,
                encoding="utf-8",
            )
        )

    logging.basicConfig(
        level=logging_config.level,
        format=logging_config.format,
        handlers=handlers,
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def validate_current_config() -> Dict[str, List[str]]:
    """Validate current configuration and return summary"""
    return get_config().get_validation_summary()


def print_config_validation() -> None:
    """Print configuration validation summary to console"""
    summary = validate_current_config()

    sections = [
        ("critical", "CRITICAL ISSUES:"),
        ("errors", "ERRORS:"),
        ("warnings", "WARNINGS:"),
        ("info", "INFO:"),
    ]
    for key, title in sections:
        if summary[key]:
            print(title)
            for issue in summary[key]:
                print(f"  {issue}")
            print()

    if not any(summary.values()):
        print("Configuration validation passed with no issues!")


def ensure_valid_config() -> Config:
    """Ensure configuration is valid or raise exception"""
    config = get_config()
    config.validate_and_fail_on_errors()
    return config
