"""vectorkb - Ordered provisioning and teardown for S3 Vectors knowledge bases."""

__version__ = "0.1.0"
