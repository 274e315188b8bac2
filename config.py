from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    api_url: str = Field("https://dummyjson.com", alias="CATALOG_API_URL")
    page_size: int = Field(10, alias="CATALOG_PAGE_SIZE", gt=0)
    placeholder_image: str = Field(
        "https://via.placeholder.com/300x200?text=No+Image", alias="CATALOG_PLACEHOLDER_IMAGE"
    )
    log_level: str = Field("INFO", alias="CATALOG_LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


settings = Settings()
