import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
DEBUG = _get_bool(os.getenv("DEBUG"), default=False)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./quiz.db")

API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "3000"))
CORS_ALLOWED_ORIGINS = _get_list(
    os.getenv("CORS_ALLOWED_ORIGINS"),
    ["http://localhost:5173", "http://localhost:8080"],
)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", str(60 * 24 * 7)))

ADMIN_SECRET_KEY = os.getenv("ADMIN_SECRET_KEY", "change-me-admin")

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() != "production":
        return
    if JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if ADMIN_SECRET_KEY == "change-me-admin":
        raise RuntimeError("ADMIN_SECRET_KEY must be set in production.")
