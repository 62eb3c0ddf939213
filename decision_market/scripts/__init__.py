"""Initialization for the scripts package."""

from .seed_state import seed_state
