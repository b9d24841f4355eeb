"""Catalog module dependencies."""

from src.core.infrastructure.database.session import get_async_session
from src.modules.catalog.infrastructure.repositories import PostgreSQLCatalogRepository


def get_catalog_repository() -> PostgreSQLCatalogRepository:
    return PostgreSQLCatalogRepository(get_async_session)
