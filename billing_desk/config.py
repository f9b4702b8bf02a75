from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    CURA_API_URL: str = "http://localhost:1100"
    CURA_AUTH_TOKEN: str = ""
    CURA_TENANT_SUBDOMAIN: str = "demo"

    CURRENCY: str = "GBP"
    CURRENCY_SYMBOL: str = "£"
    INVOICE_DUE_DAYS: int = 30
    REPORTS_DIR: str = "reports"

    GOOGLE_SPREADSHEET_KEY: str | None = None
    GOOGLE_WORKSHEET_NAME: str = "Revenue"
    GOOGLE_TOKEN_PATH: str = "data/token.json"

    LOG_LEVEL: str = "INFO"


settings = Settings()
