from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"

DEBUG = False

# seconds; None keeps entries until they are deleted
CACHE = {
    "default_timeout": None,
}

CACHE_KEYS = {
    "posts": "posts:all",
    "posts_compact": "posts:all:cached",
    "comments_stats": "posts:comments_stats",
}

# logger settings
LOGGERS = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
            "formatter": "basic",
        },
    },
    "formatters": {
        "basic": {
            "style": "{",
            "format": "{asctime:s} [{levelname:s}] -- {name:s}: {message:s}",
        }
    },
    "loggers": {
        "user_info": {
            "handlers": ("console",),
            "level": "INFO",
        },
    },
}
