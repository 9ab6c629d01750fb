"""Test suite for CartTracker.

This package contains hermetic tests following the pytest framework.
Tests are structured to mirror the carttracker/ package for discoverability.

Testing Philosophy:
    - Use pytest-mock for network isolation and injected clocks for time
    - Focus coverage on market-hours arithmetic, timer transitions and extraction
    - Avoid external dependencies - all I/O should be mocked
"""
