"""
Tests for the local database handle.
"""

from unittest.mock import MagicMock, patch

import pymysql
from pymysql.constants import CLIENT
import pytest

from sw_db_sync.errors import QueryError
from sw_db_sync.models import DbConfig
from sw_db_sync.utils.database import LocalDatabase


def fake_connection(rowcount=1, error=None):
    cursor = MagicMock()
    if error:
        cursor.execute.side_effect = error
    else:
        cursor.execute.return_value = rowcount
    connection = MagicMock()
    connection.cursor.return_value.__enter__.return_value = cursor
    return connection, cursor


def test_execute_reuses_given_connection():
    connection, cursor = fake_connection(rowcount=3)
    database = LocalDatabase(DbConfig(name="shop"), connection=connection)

    assert database.execute("UPDATE t SET a = %(a)s", {"a": 1}) == 3
    cursor.execute.assert_called_once_with("UPDATE t SET a = %(a)s", {"a": 1})


def test_execute_wraps_driver_errors():
    connection, _ = fake_connection(error=pymysql.err.ProgrammingError(1146, "Table 'x' doesn't exist"))
    database = LocalDatabase(DbConfig(name="shop"), connection=connection)

    with pytest.raises(QueryError, match="doesn't exist"):
        database.execute("UPDATE x SET a = 1")


@patch("sw_db_sync.utils.database.pymysql.connect")
def test_connect_is_lazy_and_counts_matched_rows(connect):
    connect.return_value, _ = fake_connection()
    config = DbConfig(name="shop", host="db", port=3306, user="app", password="pw")

    with LocalDatabase(config) as database:
        connect.assert_not_called()
        database.execute("SELECT 1")
        database.execute("SELECT 2")

    connect.assert_called_once()
    kwargs = connect.call_args.kwargs
    assert kwargs["autocommit"] is True
    assert kwargs["client_flag"] & CLIENT.FOUND_ROWS
    connect.return_value.close.assert_called_once()


@patch("sw_db_sync.utils.database.pymysql.connect", side_effect=pymysql.err.OperationalError(2003, "Can't connect"))
def test_connection_failure_raises_query_error(connect):
    with pytest.raises(QueryError, match="Unable to connect"):
        LocalDatabase(DbConfig(name="shop", user="app")).connect()
