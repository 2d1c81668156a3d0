from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: str = ""

    # Persist canonical records and reports after each run
    persistence_enabled: bool = False
    company_slug: str = "zapchicken"

    # Server
    base_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    # CORS origins (comma-separated)
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # Uploads / reports
    upload_dir: str = "./data/input"
    output_dir: str = "./data/output"
    max_file_size_mb: int = 10
    allowed_extensions: str = ".csv,.xlsx,.xls"

    # Analysis defaults (overridable per /process request)
    default_inactive_days: int = 30
    default_min_ticket: float = 50.0
    # Months of orders used by high-ticket / geographic / product reports; 0 = every order (default)
    analysis_period_months: int = 0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def allowed_extension_set(self) -> set[str]:
        return {
            ext.strip().lower()
            for ext in self.allowed_extensions.split(",")
            if ext.strip()
        }


settings = Settings()
