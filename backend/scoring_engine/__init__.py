"""
Competency scoring and psychometrics engine.
"""

__version__ = "0.1.0"
