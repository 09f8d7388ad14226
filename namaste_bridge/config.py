from pathlib import Path

from pydantic_settings import BaseSettings

DEFAULT_TERMINOLOGY_PATH = str(Path(__file__).parent / "data" / "terminology.json")


class Settings(BaseSettings):
    """Application configuration with environment variable support"""
    
    # Database
    database_url: str = "sqlite:///./namaste_bridge.db"
    
    # App
    app_name: str = "NAMASTE Bridge"
    debug: bool = False
    log_level: str = "INFO"
    
    # Terminology
    terminology_data_path: str = DEFAULT_TERMINOLOGY_PATH  # JSON dataset loaded on startup
    default_search_limit: int = 20
    max_search_limit: int = 100
    
    # Bundle storage: 'sql' (durable, uses database_url) or 'memory'
    bundle_store_backend: str = "sql"
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
