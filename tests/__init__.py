"""
Tests Package - Unit and Integration Tests

Test structure:
- tests/fakes.py - In-memory KeyValueStore double
- tests/conftest.py - Shared pytest fixtures (configs, sample store)
- tests/test_*.py - One module per component, plus end-to-end pipeline tests

Run with: pytest
"""
