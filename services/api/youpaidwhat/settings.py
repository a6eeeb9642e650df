from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./app.db"
    STORAGE_DIR: str = "./data"
    ALLOW_ORIGINS: str = "*"
    ADMIN_EMAILS: str = ""  # comma separated
    LOG_LEVEL: str = "INFO"
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # redaction canvas
    MAX_DISPLAY_WIDTH: int = 800
    MAX_DISPLAY_HEIGHT: int = 600
    MIN_BOX_SIZE: float = 10
    JPEG_QUALITY: int = 90
    THUMBNAIL_WIDTH: int = 300
    THUMBNAIL_HEIGHT: int = 400

    # price bounds, in cents
    MIN_PRICE_CENTS: int = 100
    MAX_PRICE_CENTS: int = 100_000_000

    @property
    def admin_emails(self) -> set[str]:
        return {e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()}

settings = Settings()
