from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List, Optional

class Settings(BaseSettings):
    aws_region: str = Field("us-east-1", env="AWS_REGION")
    s3_bucket: str = Field("travel-gallery", env="S3_BUCKET")
    dynamodb_table: str = Field("Images", env="DYNAMODB_TABLE")
    dynamodb_tags_table: str = Field("Tags", env="DYNAMODB_TAGS_TABLE")
    aws_endpoint_url: Optional[str] = Field(None, env="AWS_ENDPOINT_URL")
    # public host that replaces aws_endpoint_url inside presigned URLs
    external_endpoint: Optional[str] = Field(None, env="EXTERNAL_ENDPOINT")

    aws_access_key_id: str = Field("test", env="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str = Field("test", env="AWS_SECRET_ACCESS_KEY")

    app_title: str = Field("Travel Gallery", env="APP_TITLE")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], env="CORS_ORIGINS")

    # identity provider
    identity_url: Optional[str] = Field(None, env="IDENTITY_URL")
    identity_timeout: float = Field(5.0, env="IDENTITY_TIMEOUT")
    trust_user_header: bool = Field(False, env="TRUST_USER_HEADER")

    max_upload_bytes: int = Field(10 * 1024 * 1024, env="MAX_UPLOAD_BYTES")

    class Config:
        env_file = ".env"
        extra = "allow"

settings = Settings()
