"""
Test Suite

This module contains all tests for the PAF workflow service.

Structure:
    tests/
    ├── __init__.py         # This file
    ├── conftest.py         # Pytest fixtures
    ├── unit/               # Engine, store, service and utility tests
    │   └── __init__.py
    └── integration/        # API endpoint tests
        └── __init__.py

To run tests:
    pytest tests/
    pytest tests/unit/
    pytest tests/integration/
"""
