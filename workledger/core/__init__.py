"""
Core infrastructure: errors, storage, stores, identity and utilities.
"""

from .errors import *
from .utils import *
