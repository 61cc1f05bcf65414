"""
Settings are plain modules with uppercase constants (see _base, dev and pro).
Pick one with the COMPACTER_SETTINGS environment variable.
"""
import importlib
import os

SETTINGS_MODULE = os.environ.get("COMPACTER_SETTINGS", "compacter.conf.pro")


class Settings:
    def __init__(self, module=SETTINGS_MODULE):
        self.SETTINGS_MODULE = module
        mod = importlib.import_module(module)
        for setting in dir(mod):
            if setting.isupper():
                setattr(self, setting, getattr(mod, setting))

    def __repr__(self):
        return f"<Settings {self.SETTINGS_MODULE}>"


settings = Settings()
