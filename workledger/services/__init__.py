"""
Text processing, similarity scanning, submission and notification services.
"""

from .text import *
