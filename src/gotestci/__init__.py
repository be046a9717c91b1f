"""
gotestci - Go unit test and coverage build runner for CI
"""

__version__ = "0.1.0"

from .core import BuildOrchestrator
from .errors import BuildError
from .models import BuildConfig

__all__ = ["BuildConfig", "BuildError", "BuildOrchestrator"]
