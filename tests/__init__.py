"""
Test suite for the candle shop backend.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_shopify_import_service.py -v
"""
