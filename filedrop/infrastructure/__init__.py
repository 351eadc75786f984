"""
Infrastructure layer - external service integrations.

- storage: Object storage (R2/S3) holding every uploaded file

These wrappers translate between external formats and our domain models.
"""
