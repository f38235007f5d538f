from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "recurring-billing"
    version: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    APP_DATABASE_DSN: str = "sqlite:////tmp/billing.db"
    REDIS_URL: str = "redis://localhost:6379"

    # I'mport gateway
    IAMPORT_API_KEY: str = ""
    IAMPORT_API_SECRET: str = ""
    IAMPORT_BASE_URL: str = "https://api.iamport.kr"
    GATEWAY_TIMEOUT: float = 30.0

    # Scheduling
    BILLING_TIMEZONE: str = "Asia/Seoul"
    SCAN_HOUR: int = 6
    SCHEDULER_ENABLED: bool = True

    # "background" reconciles in-process, "arq" hands confirmations to the worker queue
    CONFIRMATION_DISPATCH: str = "background"

    # Payment display names
    PAYMENT_NAME_PREFIX: str = "CAS"
    SERVICE_NAME: str = "Castr subscription"
    SERVICE_NAME_KR: str = "캐스터 정기구독"

    @property
    def arq_dispatch_enabled(self) -> bool:
        return self.CONFIRMATION_DISPATCH == "arq"


settings = Settings()
