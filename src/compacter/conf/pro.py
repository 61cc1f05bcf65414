from compacter.conf._base import *

# Config
DEBUG = False

CACHE = {
    "default_timeout": 60 * 60,
}

# Database
DATABASES = {
    "default": {"engine": f"sqlite:///{BASE_DIR}/db.sqlite3", "config": {}},
}
