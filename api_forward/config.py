from pydantic_settings import BaseSettings

DEFAULT_MEDIA_CONTAINER_KEYS = ["sticker", "data", "result", "image", "photo", "picture"]
DEFAULT_MEDIA_CANDIDATE_FIELDS = ["url", "image", "imageUrl", "img", "src", "path", "link"]


class Settings(BaseSettings):
    config_path: str = "config.json"
    enable_file_operations: bool = False
    redis_url: str = ""
    redis_config_key: str = "api-forward:config"
    redis_connect_timeout_seconds: float = 5.0
    upstream_timeout_seconds: float = 15.0
    admin_token: str = ""
    forward_allowed_hosts: list[str] = []
    media_container_keys: list[str] = DEFAULT_MEDIA_CONTAINER_KEYS
    media_candidate_fields: list[str] = DEFAULT_MEDIA_CANDIDATE_FIELDS
    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    model_config = {"env_prefix": "API_FORWARD_"}


settings = Settings()
