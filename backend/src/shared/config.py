from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    HOST: str = "0.0.0.0"
    PORT: int = 4000
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]
    SERVER_DEVICE_ID: str = "server"
    SEND_TIMEOUT_SECONDS: float = 5.0
    # Counts the initial snapshot, so at least one push must fit behind it
    SUBSCRIBER_QUEUE_SIZE: int = Field(default=64, ge=2)
    PAD_ID_MAX_LENGTH: int = 128

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
