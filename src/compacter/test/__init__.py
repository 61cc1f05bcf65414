import logging

from compacter.conf import Settings

settings = Settings("compacter.conf.dev")

logger = logging.getLogger("user_info.test")

db = settings.DATABASES["default"]
ENGINE = db["engine"]
