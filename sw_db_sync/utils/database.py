"""
Access to the local MySQL database

Overrides run as individual statements on an autocommit connection, so a
failing statement never rolls back the ones before it.
"""

from typing import Any, Mapping, Optional, Sequence, Union

import pymysql
from pymysql.constants import CLIENT

from sw_db_sync.errors import QueryError
from sw_db_sync.models import DbConfig

Params = Optional[Union[Sequence[Any], Mapping[str, Any]]]


class LocalDatabase:
    """
    Lazily connected handle to the local database
    """

    def __init__(self, config: DbConfig, connection: Any = None):
        """
        Args:
            config: Connection parameters of the local database
            connection: Already open connection to reuse (optional)
        """
        self.config = config
        self.connection = connection

    @property
    def db_config(self) -> DbConfig:
        return self.config

    def connect(self):
        """
        Opens the connection on first use

        CLIENT.FOUND_ROWS makes UPDATE report matched rows, so an update that
        writes an unchanged value still counts as a hit.
        """
        if self.connection is None:
            try:
                self.connection = pymysql.connect(
                    host=self.config.host,
                    port=self.config.port,
                    user=self.config.user,
                    password=self.config.password,
                    database=self.config.name,
                    charset="utf8mb4",
                    autocommit=True,
                    client_flag=CLIENT.FOUND_ROWS,
                )
            except pymysql.MySQLError as e:
                raise QueryError(f"Unable to connect to local database {self.config.masked()}: {e}") from e
        return self.connection

    def execute(self, sql: str, params: Params = None) -> int:
        """
        Executes a single statement

        Args:
            sql: Statement, with pymysql placeholders if params are given
            params: Statement parameters

        Returns:
            int: Number of affected (matched) rows

        Raises:
            QueryError: If the database rejects the statement
        """
        connection = self.connect()
        try:
            with connection.cursor() as cursor:
                return cursor.execute(sql, params)
        except pymysql.MySQLError as e:
            raise QueryError(str(e)) from e

    def close(self) -> None:
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
