"""Base repository for single-table entities."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Optional, TypeVar

from psycopg2 import errors as pg_errors

from .connection import ConnectionManager

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class DuplicateError(RepositoryError):
    """Entity with the same id already exists."""
    pass


class BaseRepository(ABC, Generic[T]):
    """Insert and lookup by id over one table.

    Subclasses map rows to entities and entities to column parameters.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        table_name: str,
    ):
        self.connection_manager = connection_manager
        self.table_name = table_name

        logger.info(
            "REPOSITORY_INITIALIZED",
            extra={"table_name": table_name}
        )

    @abstractmethod
    def _row_to_entity(self, row: tuple) -> T:
        """Convert a database row to an entity."""

    @abstractmethod
    def _entity_to_params(self, entity: T) -> Dict[str, Any]:
        """Convert an entity to a column -> value mapping."""

    def find_by_id(self, entity_id: str) -> Optional[T]:
        """Return the entity with ``entity_id`` or None."""
        with self.connection_manager.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT * FROM {self.table_name} WHERE id = %s",
                    (entity_id,)
                )
                row = cur.fetchone()

        if row is None:
            return None
        return self._row_to_entity(row)

    def insert(self, entity: T) -> str:
        """Insert a new entity and return its id.

        Raises:
            DuplicateError: If a row with the same id exists
        """
        params = self._entity_to_params(entity)
        columns = list(params.keys())
        placeholders = ", ".join(["%s"] * len(columns))

        query = (
            f"INSERT INTO {self.table_name} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) RETURNING id"
        )

        try:
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, list(params.values()))
                    row = cur.fetchone()
                conn.commit()
        except pg_errors.UniqueViolation as e:
            logger.warning(
                "REPOSITORY_DUPLICATE_INSERT",
                extra={"table_name": self.table_name, "entity_id": params.get("id")}
            )
            raise DuplicateError(f"{self.table_name} row {params.get('id')} exists") from e

        return row[0] if row else params["id"]

    def count(self) -> int:
        """Total rows in the table."""
        with self.connection_manager.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) FROM {self.table_name}")
                row = cur.fetchone()

        return row[0] if row else 0
