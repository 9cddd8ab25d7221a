"""
Odin Back-office Models Package

Import all models here to ensure they are registered with SQLAlchemy's metadata.
"""

from .models import *
from .system_health import *
