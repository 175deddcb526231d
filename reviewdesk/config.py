from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Review Admin Gateway"
    api_base_url: str = "http://localhost:3001/api"
    request_timeout: float = 15.0

    # Upstream-issued tokens are verified with the shared secret
    jwt_secret: str = "dev-secret-change"
    jwt_algorithm: str = "HS256"

    allow_origins: str = "*"
    per_page: int = 10
    port: int = 8000

    @property
    def origins(self) -> List[str]:
        origins = [x.strip() for x in self.allow_origins.split(",") if x.strip()]
        return origins or ["*"]


settings = Settings()
