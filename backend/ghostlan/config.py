from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./ghostlan.db"
    cors_origins: str = "*"
    upload_dir: str = "uploads"
    public_base_url: str | None = None
    seed_demo_data: bool = True
    seed_employee_count: int = 500
    seed_message_count: int = 200
    seed_default_password: str = "pass123"
    max_message_length: int = 4000
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
