"""
Test package for the PlaceTracker application.

Test Organization:
    unit/: Unit tests for models, services and Lambda handlers
    conftest.py: Pytest configuration, moto fixtures and event builders
"""
