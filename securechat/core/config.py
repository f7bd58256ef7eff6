from pydantic import field_validator
from pydantic_settings import BaseSettings  # type: ignore
from typing import Literal, Optional

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

MIN_RSA_MODULUS_LENGTH = 2048


class Settings(BaseSettings):
    # Core
    MODE: str = "dev"  # dev, prod
    LOG_LEVEL: str = "INFO"

    # Key store
    KEY_STORE_BACKEND: Literal["memory", "json", "postgres", "redis"] = "json"
    KEY_STORE_PATH: str = "~/.securechat/keys"
    KEY_STORE_NAMESPACE: str = "key-store"
    KEY_STORE_PASSPHRASE: Optional[str] = None

    # Database / Cache backends
    DATABASE_URL: str = "sqlite:///securechat.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Crypto
    RSA_MODULUS_LENGTH: int = MIN_RSA_MODULUS_LENGTH

    @field_validator("RSA_MODULUS_LENGTH")
    @classmethod
    def validate_modulus(cls, v: int) -> int:
        if v < MIN_RSA_MODULUS_LENGTH:
            raise ValueError(f"RSA_MODULUS_LENGTH must be at least {MIN_RSA_MODULUS_LENGTH}")
        return v

    class Config:
        case_sensitive = True
        env_file = ".env"
        extra = "ignore"


settings = Settings()
