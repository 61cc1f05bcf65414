from copy import deepcopy

from compacter.conf._base import *

# Paths
TEST_DIR = Path(__file__).parent.parent / "test"

# Config
DEBUG = True

# Database
DATABASES = {
    # in-memory; every engine gets its own database
    "default": {"engine": "sqlite://"},
}

LOGGERS = deepcopy(LOGGERS)
LOGGERS["loggers"]["user_info"]["level"] = "DEBUG"
