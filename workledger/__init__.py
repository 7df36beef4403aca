"""
WorkLedger - Originality checks and licensing for written works

Authors submit texts that are scanned for overlap against other authors'
works, keep a revision history of their edits, and receive exactly one
verifiable license per work.
"""

__version__ = "1.0.0"
__author__ = "WorkLedger Team"
__description__ = "Originality checks and licensing for written works"
