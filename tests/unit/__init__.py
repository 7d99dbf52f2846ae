"""
Unit tests for PlaceTracker application components.

AWS services are mocked with moto and Apple Maps calls with unittest.mock,
so the suite runs without network access.
"""
