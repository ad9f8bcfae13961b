import os
from dotenv import load_dotenv

# Load .env from project root
load_dotenv()

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


# DRC rule parameters
DRC_CHECK_OPTIONAL_PORTS = _env_bool("DRC_CHECK_OPTIONAL_PORTS", False)
DRC_NAME_PATTERN = os.getenv("DRC_NAME_PATTERN", r"^[A-Za-z][A-Za-z0-9_\-. ]*$")
DRC_INTERCONNECT_FANOUT_LIMIT = int(os.getenv("DRC_INTERCONNECT_FANOUT_LIMIT", "16"))
DRC_RULES_FILE = os.getenv("DRC_RULES_FILE", "")

# Canvas units within which duplicate nodes count as the same placement
DRC_POSITION_EPSILON = float(os.getenv("DRC_POSITION_EPSILON", "10"))

# Per-project files (arch_diagram.json, drc_results.json)
PROJECTS_ROOT = os.getenv("PROJECTS_ROOT", "./projects")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]
