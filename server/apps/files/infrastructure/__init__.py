"""Infrastructure layer for files app.

This package contains integrations with external systems:
- Custom storage backend (S3/MinIO/R2)
- Metadata helpers (MIME type, extensions)

Keep infrastructure concerns separate from the connector logic.
"""
