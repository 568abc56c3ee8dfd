import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

def get_required_env(key: str, default: str = None) -> str:
    """Get required environment variable or return default"""
    value = os.getenv(key)
    if value is None:
        if default is not None:
            return default
        raise ValueError(f"Required environment variable {key} is not set. Please check your .env file.")
    return value

def get_required_env_int(key: str, default: str = None) -> int:
    """Get required environment variable as int or raise error"""
    value = get_required_env(key, default)
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be an integer, got: {value}")

def get_required_env_float(key: str, default: str = None) -> float:
    """Get required environment variable as float or raise error"""
    value = get_required_env(key, default)
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be a float, got: {value}")

def get_env_bool(key: str, default: str = "false") -> bool:
    return os.getenv(key, default).lower() in ("true", "1", "yes", "on")


_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))


class Settings:
    # API Configuration - Default values
    API_HOST = get_required_env("API_HOST", "0.0.0.0")
    PORT = get_required_env_int("PORT", "8000")
    CORS_ORIGINS = [o.strip() for o in get_required_env("CORS_ORIGINS", "*").split(",") if o.strip()]

    # Logging Configuration - Default values
    LOG_LEVEL = get_required_env("LOG_LEVEL", "INFO")

    # Listing source
    SOURCE_DOMAIN = get_required_env("SOURCE_DOMAIN", "www.idealista.com")

    # Autofill pipeline
    AUTOFILL_CACHE_TTL_SECONDS = get_required_env_float("AUTOFILL_CACHE_TTL_SECONDS", "3600")
    # Minimum spacing between any two outbound calls to the portal
    AUTOFILL_RATE_LIMIT_SECONDS = get_required_env_float("AUTOFILL_RATE_LIMIT_SECONDS", "2.0")
    # "idealista" disables the LLM branch entirely
    AUTOFILL_FORCE_SOURCE = get_required_env("AUTOFILL_FORCE_SOURCE", "").strip().lower()
    COOKIE_TTL_SECONDS = get_required_env_float("COOKIE_TTL_SECONDS", "1800")
    FETCH_TIMEOUT_SECONDS = get_required_env_float("FETCH_TIMEOUT_SECONDS", "15")
    REPORT_FETCH_TIMEOUT_SECONDS = get_required_env_float("REPORT_FETCH_TIMEOUT_SECONDS", "20")

    # OpenAI Configuration - Optional (LLM enrichment is skipped without a key)
    OPENAI_API_KEY = get_required_env("OPENAI_API_KEY", "")
    LLM_MODEL = get_required_env("LLM_MODEL", "gpt-4.1-nano")
    LLM_MAX_TOKENS = get_required_env_int("LLM_MAX_TOKENS", "256")
    LLM_TEMPERATURE = get_required_env_float("LLM_TEMPERATURE", "0.1")
    LLM_TIMEOUT_SECONDS = get_required_env_float("LLM_TIMEOUT_SECONDS", "20")
    LLM_MAX_CALLS_PER_MINUTE = get_required_env_int("LLM_MAX_CALLS_PER_MINUTE", "60")
    LLM_MAX_CALLS_PER_HOUR = get_required_env_int("LLM_MAX_CALLS_PER_HOUR", "500")
    # Applied to the model's conservative maxRent
    LLM_RENT_UPLIFT = get_required_env_float("LLM_RENT_UPLIFT", "1.1")

    # Rent market reports
    RENT_MARKET_ENABLED = get_env_bool("RENT_MARKET_ENABLED", "true")
    RENT_MARKET_TTL_DAYS = get_required_env_float("RENT_MARKET_TTL_DAYS", "30")
    RENT_MARKET_STORE_PATH = get_required_env(
        "RENT_MARKET_STORE_PATH", os.path.join(_PROJECT_ROOT, "data", "rent_market.json")
    )

    # Reference data (None = bundled CSVs in autofill/data). GAZETTEER_DATA_DIR must hold
    # UTF-8 comunidades.csv, provincias.csv and municipios.csv; headers are case-insensitive,
    # "," or ";" delimited, extra columns ignored (the full INE CODAUTO;CPRO;CMUN;DC;NOMBRE
    # export works as municipios.csv)
    GAZETTEER_DATA_DIR = os.getenv("GAZETTEER_DATA_DIR") or None
    STATIC_RENT_CSV_PATH = os.getenv("STATIC_RENT_CSV_PATH") or None


settings = Settings()
