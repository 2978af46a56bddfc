"""
Test suite for artgallery application.

- Unit tests for models, services, UI handlers and CLI tasks
- Integration tests for the upload pipeline against a real DuckDB file
"""
