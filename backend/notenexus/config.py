"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    STORAGE_BACKEND: str
    DB_PATH: Path
    CATALOG_DIR: Path
    ALLOW_DEV_CORS: bool
    ADMIN_EMAIL: str
    ADMIN_PASSWORD: str
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "json").lower()
        default_db = BASE / ("db.json" if self.STORAGE_BACKEND == "json" else "app.db")
        self.DB_PATH = Path(os.getenv("DB_PATH", str(default_db))).expanduser()
        self.CATALOG_DIR = Path(os.getenv("CATALOG_DIR", str(BASE.parent / "database"))).expanduser()
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "").strip()
        self.ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.STORAGE_BACKEND not in ("json", "sqlite"):
            raise RuntimeError(f"STORAGE_BACKEND must be 'json' or 'sqlite', got {self.STORAGE_BACKEND!r}")
        if self.JWT_EXPIRE_HOURS <= 0:
            raise RuntimeError("JWT_EXPIRE_HOURS must be positive")
        if bool(self.ADMIN_EMAIL) != bool(self.ADMIN_PASSWORD):
            raise RuntimeError("ADMIN_EMAIL and ADMIN_PASSWORD must be set together")


settings = Settings()
