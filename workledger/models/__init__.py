"""
Pydantic models for works, licenses and similarity results.
"""

from .work import *
from .license import *
from .similarity import *
