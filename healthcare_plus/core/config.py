from pydantic_settings import BaseSettings
from typing import Optional, List, Literal
import os
from pathlib import Path

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Healthcare Plus Appointment Service"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    TESTING: bool = os.getenv("TESTING", "0").lower() in ("1", "true", "t", "yes", "y")

    # Flat-file storage, one JSON document per collection
    DATA_DIR: str = os.getenv("DATA_DIR", "./data")
    STORE_SERIALIZE_WRITES: bool = False

    # Security
    SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12

    # Account deletion: "soft" deactivates and renames, "hard" removes the record
    DELETION_MODE: Literal["soft", "hard"] = "soft"

    # Appointments
    REFERENCE_PREFIX: str = "APPT"
    MESSAGE_MAX_LENGTH: int = 500

    # Seed administrator, created at startup when no admin exists
    DEFAULT_ADMIN_NAME: str = "Admin User"
    DEFAULT_ADMIN_EMAIL: str = "admin@healthcareplus.com"
    DEFAULT_ADMIN_PHONE: str = "+254700000000"
    DEFAULT_ADMIN_PASSWORD: str = "Admin123"

    # Email settings (for notifications)
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "Healthcare Plus <noreply@healthcareplus.com>"
    CONTACT_PHONE: str = "(254) 123-456"
    APP_URL: str = "http://localhost:8000"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080", "http://testserver"]
    ALLOWED_HOSTS: List[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]

    @property
    def data_path(self) -> Path:
        """Resolved directory holding the collection files."""
        return Path(self.DATA_DIR).expanduser()

    @property
    def email_configured(self) -> bool:
        return bool(self.SMTP_HOST)

    class Config:
        env_file = ".env"
        case_sensitive = True

# Create settings instance
settings = Settings()
