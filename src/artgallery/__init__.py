"""
artgallery - Image gallery with an admin console built on Streamlit

A web application for publishing an image gallery with features including:
- Public gallery browsing with category and tag filters
- Batched, concurrency-bounded multi-file upload to Google Cloud Storage
- Image, category and tag metadata management with DuckDB
- Orphaned storage object reconciliation
"""

__version__ = "0.1.0"
__author__ = "artgallery"
__description__ = "Image gallery with an admin console built on Streamlit"
