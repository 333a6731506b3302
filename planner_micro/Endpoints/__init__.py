# Endpoints package initialization
from . import auth
from . import schedule
from . import notifications
from . import admin
from . import community
from . import calendar
from . import teacher
from . import grades
from . import ai

__all__ = [
    "auth",
    "schedule",
    "notifications",
    "admin",
    "community",
    "calendar",
    "teacher",
    "grades",
    "ai",
]
