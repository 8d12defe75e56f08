from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "local"
    app_name: str = "campadmin-api"
    api_version: str = "v1"
    api_cors_allowed_origins: str = "http://localhost:5173,http://localhost:3000"
    api_cors_allow_credentials: bool = True

    supabase_url: str = ""
    supabase_service_role_key: str = ""

    list_page_size: int = 10
    list_max_page_size: int = 200
    search_debounce_ms: int = 500

    stage_age_floor: int = 2
    stage_age_ceiling: int = 18

    image_max_upload_bytes: int = 5 * 1024 * 1024
    image_max_dimension: int = 800
    stage_image_bucket: str = "stages"
    csv_import_bucket: str = "csv-files"

    waiting_list_offer_hours: int = 48
    newsletter_import_batch_size: int = 100
    amount_match_tolerance: float = 0.01


settings = Settings()
