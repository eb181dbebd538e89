"""Test fixtures for the virtual clock.

This package provides reusable test fixtures:
- core: Clocks on manual time, time models and call recorders
"""
