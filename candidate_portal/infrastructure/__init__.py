"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- snowflake: Candidate metadata persistence
- storage: Blob storage (R2/S3) for resumes and videos
- video: Media probing with FFprobe

These wrappers translate between external formats and our domain models.
"""
