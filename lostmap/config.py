import os
from dataclasses import dataclass, field
from typing import List, Optional


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./lostmap.db"
    jwt_secret: str = "change-me"
    google_client_id: str = ""

    # Cloudflare R2 (S3 compatible) for report photos
    r2_bucket: str = ""
    cloudflare_account_id: str = ""
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    r2_public_url: str = ""

    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    geocode_user_agent: str = "lostmap/0.1"
    geocode_timeout: float = 10.0

    allow_edit_unowned: bool = True
    session_idle_minutes: int = 120
    max_sessions: int = 1000
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])

    @property
    def r2_endpoint_url(self) -> Optional[str]:
        if not self.cloudflare_account_id:
            return None
        return f"https://{self.cloudflare_account_id}.r2.cloudflarestorage.com"


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./lostmap.db").strip(),
        jwt_secret=os.getenv("JWT_SECRET", "change-me").strip(),
        google_client_id=os.getenv("GOOGLE_CLIENT_ID", "").strip(),
        r2_bucket=os.getenv("R2_BUCKET", "").strip(),
        cloudflare_account_id=os.getenv("CLOUDFLARE_ACCOUNT_ID", "").strip(),
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID", "").strip(),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY", "").strip(),
        r2_public_url=os.getenv("R2_PUBLIC_URL", "").strip(),
        nominatim_url=os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/search").strip(),
        geocode_user_agent=os.getenv("GEOCODE_USER_AGENT", "lostmap/0.1").strip(),
        geocode_timeout=float(os.getenv("GEOCODE_TIMEOUT", "10").strip()),
        allow_edit_unowned=_flag("ALLOW_EDIT_UNOWNED_REPORTS", "true"),
        session_idle_minutes=int(os.getenv("SESSION_IDLE_MINUTES", "120").strip()),
        max_sessions=int(os.getenv("MAX_SESSIONS", "1000").strip()),
        cors_origins=[
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ],
    )
