# config/settings/local.py
from .base import *  # noqa

DEBUG = True

LOGGING["loggers"]["clinic_core"]["level"] = "DEBUG"  # noqa: F405
