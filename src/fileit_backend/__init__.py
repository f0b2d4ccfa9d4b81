"""
FileIt Backend - REST API for the FileIt document-management application

This package provides a FastAPI-based web service that stores and serves
book content kept in Google Cloud Storage. It enables:

- User login and session tokens for mutating operations
- Reading the BookList index and converting book XML to JSON
- Uploading Word and PDF documents, rendered to per-page images
- Time-limited signed URLs for book content and page images

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - cloud_storage: Bucket operations over the GCS interoperability API
    - signing: RSA-SHA256 signed URL generation
    - book_index / book_tree / delete_book: BookList maintenance
    - content_processor: Document to page-image conversion
    - credentials: User and session storage
    - configuration: cloud.yaml loading

Usage:
    Run the API server with:
        uvicorn fileit_backend.main:app --reload --host 0.0.0.0 --port 8000
"""
