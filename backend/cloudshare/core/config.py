import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./cloudshare.db")
    DATABASE_ECHO: bool = _env_bool("DATABASE_ECHO", "false")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "your-secret-key")
    ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    API_PREFIX: str = os.getenv("API_PREFIX", "/api")
    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "")

    # 16..48 bytes; 48 bytes encode to the 64 characters the token column holds
    SHARE_TOKEN_BYTES: int = min(48, max(16, int(os.getenv("SHARE_TOKEN_BYTES", "24"))))
    SHARE_METADATA_COUNTS_ACCESS: bool = _env_bool("SHARE_METADATA_COUNTS_ACCESS", "true")

    STREAM_CHUNK_SIZE: int = int(os.getenv("STREAM_CHUNK_SIZE", str(64 * 1024)))
    STORAGE_ROOT: str = os.getenv("STORAGE_ROOT", "./storage")
    MEDIA_TYPE_PREFIXES: tuple = ("video/", "audio/")

    MINIO_ENABLED: bool = _env_bool("MINIO_ENABLED", "false")
    MINIO_ENDPOINT: str = os.getenv("MINIO_ENDPOINT", "minio:9000")
    MINIO_ACCESS_KEY: str = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
    MINIO_SECRET_KEY: str = os.getenv("MINIO_SECRET_KEY", "minioadmin")
    MINIO_BUCKET: str = os.getenv("MINIO_BUCKET", "cloudshare")
    MINIO_SECURE: bool = _env_bool("MINIO_SECURE", "false")

    CLEANUP_ENABLED: bool = _env_bool("CLEANUP_ENABLED", "true")
    CLEANUP_INTERVAL_SECONDS: int = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "300"))
    CLEANUP_MAX_RECORDS_PER_LOOP: int = int(os.getenv("CLEANUP_MAX_RECORDS_PER_LOOP", "200"))

settings = Settings()
