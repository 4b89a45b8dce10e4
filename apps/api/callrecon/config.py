from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str
    database_echo: bool = False
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]
    # Mount point for the provider callbacks, e.g. "/api/voice"
    webhook_path_prefix: str = ""
    webhook_verifier: Literal["header", "signature"] = "header"
    webhook_signature_secret: str = ""
    webhook_signature_header: str = "X-Cloudonix-Signature"
    webhook_user_agent_marker: str = "cloudonix"
    webhook_enforce_verification: bool = False
    cdr_default_page_size: int = 50
    cdr_max_page_size: int = 200

    class Config:
        env_file = ".env"


settings = Settings()
