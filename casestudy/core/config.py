"""
Application configuration settings
FILE: casestudy/core/config.py
"""
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    # API metadata
    api_title: str = "Case Study Live API"
    api_version: str = "1.0.0"
    
    # MongoDB Configuration
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "casestudy_live"
    mongodb_timeout_ms: int = 5000
    
    # Join codes
    session_code_length: int = 6
    session_code_alphabet: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    
    # Sessions with no activity for this long are ended by the timeout sweep
    session_inactivity_timeout_minutes: int = 30
    
    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:4000",
    ]
    
    class Config:
        env_file = ".env"
        case_sensitive = False  # This allows case-insensitive matching
        extra = "allow"  # This allows extra fields


settings = Settings()
