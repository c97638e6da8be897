import os

from dotenv import load_dotenv

# Load .env for local development (no-op if the file doesn't exist or in prod
# where vars are injected directly into the environment by the platform).
load_dotenv()

# Runtime environment: "development" | "production"
APP_ENV: str = os.getenv("APP_ENV", "development")

# Signs access/refresh credentials. Must be set to a strong random value in
# production (e.g. `python -c "import secrets; print(secrets.token_hex(32))"`)
SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-in-production")

IS_PROD: bool = APP_ENV == "production"

# Credential lifetimes, in seconds.
ACCESS_TOKEN_TTL: int = int(os.getenv("ACCESS_TOKEN_TTL", "600"))
REFRESH_TOKEN_TTL: int = int(os.getenv("REFRESH_TOKEN_TTL", str(7 * 24 * 60 * 60)))

# Comma-separated list of origins allowed to send credentialed requests.
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()
]

# Used by the API client (src.app.client).
API_URL: str = os.getenv("API_URL", "http://localhost:3000")
CDN_URL: str = os.getenv("CDN_URL", "http://localhost:3000/images")
