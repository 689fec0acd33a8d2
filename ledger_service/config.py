"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_JWT_SECRET = "change-me-in-production"


class LedgerConfig(BaseSettings):
    """Ledger service configuration"""
    
    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )
    
    # Storage configuration
    database_url: str = "sqlite:///ledger.db"  # memory://, sqlite:///path or postgresql://...
    storage_timeout_seconds: float = 5.0  # Deadline for every storage call
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    
    # Security configuration
    jwt_secret: SecretStr = SecretStr(DEFAULT_JWT_SECRET)
    jwt_algorithm: str = "HS256"
    jwt_expiry_hours: int = 24
    token_header: str = "x-jwt-token"
    password_min_length: int = 8
    allow_cross_account_access: bool = False  # Admin-style access to any account id
    
    # Business rules configuration
    starting_balance: int = 10000  # Smallest currency unit
    account_number_attempts: int = 5
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret.get_secret_value() == DEFAULT_JWT_SECRET


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
