"""API Routers.

Store routers (characters, LoRAs, wildcards, ...) live in src/store/api.py.
"""
from . import system
