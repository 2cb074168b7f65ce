import os
import log
from dotenv import load_dotenv
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Load .env file into environment
load_dotenv()


def _parse_tokens(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def _check_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"RESULTS_TIMEZONE '{name}' is not a known IANA timezone.") from e
    return name


class Config:
    def __init__(self):
        self.valkey_host = os.getenv("VALKEY_HOST", "localhost")
        self.valkey_port = int(os.getenv("VALKEY_PORT", 6379))
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./experimentation.db")
        self.log_level = os.getenv("LOG_LEVEL", default="INFO")
        self.log_file = os.getenv("LOG_FILE", default="experiment_results.log")
        self.valid_tokens = _parse_tokens(os.getenv("VALID_TOKENS"))
        self.celery_broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1" )
        self.celery_backend_url = os.getenv("CELERY_BACKEND_URL", "redis://localhost:6379/1" )
        self.celery_task_always_eager = os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() in ("1", "true", "yes")

        # Statistics settings, 0 disables the sample size floor
        self.min_sample_size = int(os.getenv("MIN_SAMPLE_SIZE", 30))
        self.significance_level = float(os.getenv("SIGNIFICANCE_LEVEL", 0.05))
        self.results_timezone = _check_timezone(os.getenv("RESULTS_TIMEZONE", "UTC"))

        # Call setup_logging when the application starts
        log.setup_logging(self.log_level, self.log_file)

    def __repr__(self):
        return (
            f"<Settings host={self.valkey_host} port={self.valkey_port} loglevel={self.log_level}, "
            f"broker_url:{self.celery_broker_url}, backend_url:{self.celery_backend_url}, "
            f"min_sample_size:{self.min_sample_size}, timezone:{self.results_timezone}>"
        )

config = Config()
