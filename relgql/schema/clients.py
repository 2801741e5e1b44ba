"""Database clients that readers send catalog statements through."""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence

import duckdb

from ..exceptions import ConnectionError

logger = logging.getLogger(__name__)

Record = Sequence[Any]


class DataAPIClient(ABC):
    """
    Executes one SQL statement and returns its records.

    Remote engines (an RDS Data API session, for example) are provided by the
    caller; values are always passed as named parameters, never inlined.
    """

    @abstractmethod
    async def execute_statement(
        self,
        sql: str,
        parameters: Optional[Dict[str, Any]] = None
    ) -> List[Record]:
        """Run ``sql`` with ``parameters`` bound by name and return all rows."""

    def close(self) -> None:
        """Release any resources held by the client."""


class DuckDBClient(DataAPIClient):
    """Runs statements against a DuckDB connection on a worker thread."""

    def __init__(self, connection: duckdb.DuckDBPyConnection, owns_connection: bool = False):
        self.connection = connection
        self.owns_connection = owns_connection
        self.executor = ThreadPoolExecutor(max_workers=1)
        self._lock = threading.Lock()

    @classmethod
    def from_path(cls, database: str, read_only: bool = True) -> "DuckDBClient":
        """Open a DuckDB database file (or ':memory:')."""
        try:
            if database == ":memory:":
                connection = duckdb.connect(":memory:")
            else:
                connection = duckdb.connect(database, read_only=read_only)
        except Exception as e:
            raise ConnectionError(
                f"Could not open DuckDB database: {e}",
                database=database
            ) from e
        return cls(connection, owns_connection=True)

    async def execute_statement(
        self,
        sql: str,
        parameters: Optional[Dict[str, Any]] = None
    ) -> List[Record]:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            self.executor,
            self._execute_sync,
            sql,
            parameters
        )

    def _execute_sync(self, sql: str, parameters: Optional[Dict[str, Any]]) -> List[Record]:
        with self._lock:
            if parameters:
                result = self.connection.execute(sql, parameters)
            else:
                result = self.connection.execute(sql)
            return result.fetchall()

    def close(self) -> None:
        self.executor.shutdown(wait=True)
        if self.owns_connection:
            self.connection.close()
            logger.debug("Closed DuckDB connection")
