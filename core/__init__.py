# Cash-Up Engine - Core Module
"""
Core module containing:
- config: Settings loaded from the environment
- constants: System-wide constants
- errors: Error taxonomy
- logging: Request-aware logging setup
"""

from .constants import *
from .errors import *
