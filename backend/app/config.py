import logging
import os

logger = logging.getLogger(__name__)


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _parse_positive_float(env_var: str, default: float) -> float:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        value = float(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid number (got %r); defaulting to %s",
            env_var,
            raw_value,
            default,
        )
        return default
    if value <= 0:
        logger.warning("%s must be positive; defaulting to %s", env_var, default)
        return default
    return value


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")

# Waiting matches whose scheduled time is older than this are closed by the
# auto-finish sweep.
AUTO_FINISH_GRACE_HOURS = _parse_positive_float("AUTO_FINISH_GRACE_HOURS", 2.0)

SCORING_RATE_LIMIT = os.getenv("SCORING_RATE_LIMIT", "120/minute")

# Milestones on a match without a usable start time are dated this far back.
MILESTONE_FALLBACK_SECONDS = 300
