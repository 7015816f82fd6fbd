from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

MAX_FILE_BYTES = 10 * 1024 * 1024
MAX_QUEUE_FILES = 20
MAX_DESCRIPTION_LENGTH = 100
MAX_TAGS_PER_FILE = 10

class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GALLERY_", env_file=".env", extra="ignore")

    base_url: str = "http://localhost:8000"
    access_token: Optional[str] = None
    # some deployments allow 50
    title_max_length: int = Field(30, ge=1)
    max_files: int = MAX_QUEUE_FILES
    redirect_delay: float = 2.0
    request_timeout: float = 60.0
