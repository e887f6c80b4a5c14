"""
Database connectivity module for the donor import services.

This module provides PostgreSQL connectivity using SQLAlchemy 2.x and psycopg3.
"""

from .connector import TENANT_GUC, get_engine, set_tenant

__all__ = ["TENANT_GUC", "get_engine", "set_tenant"]
