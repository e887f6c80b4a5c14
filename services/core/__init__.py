"""
Shared infrastructure for the donor import services:

- Pydantic settings for configuration
- Structured JSON logging with structlog
- SQLAlchemy engine factory and tenant scoping
- Phone and email normalization helpers
"""

__version__ = "0.1.0"
