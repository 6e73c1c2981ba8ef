"""
PayCall Backend Configuration
Environment-based configuration management
"""

from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    ALLOWED_HOSTS: str = Field(default="*")
    ALLOWED_ORIGINS: str = Field(default="*")

    # Database Configuration
    DATABASE_URL: str = Field(default="postgresql+asyncpg://localhost:5432/paycall")
    DATABASE_POOL_SIZE: int = Field(default=10)
    DATABASE_MAX_OVERFLOW: int = Field(default=20)

    # Redis Configuration
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    REDIS_POOL_SIZE: int = Field(default=10)

    # Credentials
    API_KEY_PREFIX_AGENT: str = Field(default="mnee_")
    API_KEY_PREFIX_PROVIDER: str = Field(default="prov_")

    # Blockchain Configuration
    ETHEREUM_RPC_URL: str = Field(default="https://ethereum-rpc.publicnode.com")
    NETWORK: str = Field(default="mainnet")
    PAYMENT_TOKEN_ADDRESS: str = Field(default="0x8ccedbAe4916b79da7F3F612EfB2EB93A2bFD6cF")
    PAYMENT_TOKEN_DECIMALS: int = Field(default=6)
    SERVER_PAYMENT_ADDRESS: str = Field(default="0x0000000000000000000000000000000000000000")
    CHAIN_CONFIRMATION_TIMEOUT: int = Field(default=120)

    # Marketplace
    DEFAULT_REVENUE_SHARE: int = Field(default=80)  # provider keeps 80%
    AUTO_APPROVE_TOOLS: bool = Field(default=True)
    USAGE_ERROR_MESSAGE_MAX: int = Field(default=1000)
    PROVIDER_ERROR_DETAIL_MAX: int = Field(default=500)
    PROVIDER_USER_AGENT: str = Field(default="PayCall-Marketplace/1.0")

    # Language model
    OPENAI_API_KEY: Optional[str] = Field(default=None)
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1")
    OPENAI_MODEL: str = Field(default="gpt-4-turbo-preview")

    # Demo agent
    DEMO_AGENT_PRIVATE_KEY: Optional[str] = Field(default=None)
    DEMO_AGENT_WALLET: str = Field(default="0x0000000000000000000000000000000000000000")
    DEMO_RATE_LIMIT_MAX: int = Field(default=3)
    DEMO_RATE_LIMIT_WINDOW: int = Field(default=3600)
    DEMO_SESSION_TTL: int = Field(default=300)

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        if v not in ["development", "staging", "production"]:
            raise ValueError("ENVIRONMENT must be development, staging, or production")
        return v

    @field_validator("ALLOWED_HOSTS", "ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_list_from_env(cls, v):
        if isinstance(v, list):
            return ",".join(v)
        if isinstance(v, str):
            return v
        return str(v)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def allowed_hosts_list(self) -> List[str]:
        """Convert ALLOWED_HOSTS string to list"""
        return [host.strip() for host in self.ALLOWED_HOSTS.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        """Convert ALLOWED_ORIGINS string to list"""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def payment_config(self) -> dict:
        """Token/network/recipient block shared by every 402 challenge"""
        return {
            "token": self.PAYMENT_TOKEN_ADDRESS,
            "network": self.NETWORK,
            "recipient": self.SERVER_PAYMENT_ADDRESS,
        }

# Global settings instance
settings = Settings()
