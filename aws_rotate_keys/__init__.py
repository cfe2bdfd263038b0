"""Rotate AWS IAM access keys stored in the shared credentials file."""

__title__ = "aws-rotate-keys"
__version__ = "1.2.0"
__license__ = "MIT"
