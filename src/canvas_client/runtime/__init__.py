"""
Runtime support for the Canvas client: the error model.
"""

from .errors import *
