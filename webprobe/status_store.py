"""
webprobe status store: the PostgreSQL system of record for each monitor's current status,
written to by the checker when a probe changes a monitor's status. Also contains the admin
commands to create the database tables and display the stored statuses.
"""
import argparse
import logging

import iso8601
from psycopg2.pool import ThreadedConnectionPool
import psycopg2
from tabulate import tabulate

from .config import StatusStoreConfig, loglevel_from_env
from .model import StatusUpdate


DB_CREATE_STMTS = (
    """
    CREATE TABLE monitor_status (
        monitor_id VARCHAR(256) NOT NULL PRIMARY KEY,
        status VARCHAR(16) NOT NULL,
        status_code INTEGER,
        message TEXT,
        region VARCHAR(64) NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )
    """,
    """
    CREATE TABLE monitor_status_log (
        id BIGSERIAL NOT NULL PRIMARY KEY,
        monitor_id VARCHAR(256) NOT NULL,
        status VARCHAR(16) NOT NULL,
        status_code INTEGER,
        message TEXT,
        region VARCHAR(64) NOT NULL,
        check_time TIMESTAMPTZ NOT NULL
    )
    """,
)

STATUS_UPSERT_SQL = """
INSERT INTO monitor_status (monitor_id, status, status_code, message, region, updated_at)
VALUES (%(monitor_id)s, %(status)s, %(status_code)s, %(message)s, %(region)s, %(check_time)s)
ON CONFLICT (monitor_id) DO UPDATE SET
    status = EXCLUDED.status,
    status_code = EXCLUDED.status_code,
    message = EXCLUDED.message,
    region = EXCLUDED.region,
    updated_at = EXCLUDED.updated_at
"""

STATUS_LOG_INSERT_SQL = """
INSERT INTO monitor_status_log (monitor_id, status, status_code, message, region, check_time)
VALUES (%(monitor_id)s, %(status)s, %(status_code)s, %(message)s, %(region)s, %(check_time)s)
"""


def init_db(db_conn):
    """
    Create the status store tables with hardcoded SQL CREATE statements.
    """
    with db_conn as txn:
        with txn.cursor() as curs:
            for stmt in DB_CREATE_STMTS:
                curs.execute(stmt)


class PostgresStatusStore(object):
    """
    Writes status updates from concurrent check requests through a thread-safe connection pool.
    """

    def __init__(self, database_conn_str, max_connections=10):
        self.logger = logging.getLogger(__name__ + ".PostgresStatusStore")
        self.db_pool = ThreadedConnectionPool(0, max_connections, database_conn_str)

    def update_status(self, update: StatusUpdate):
        """
        Record a status change for a monitor, replacing its current status and appending to its log
        """
        row_to_write = update.asdict()
        # The check time is an ISO8601 timestamp string, parse this:
        row_to_write["check_time"] = iso8601.parse_date(row_to_write["check_time"])

        db_conn = self.db_pool.getconn()
        try:
            with db_conn as txn:
                with txn.cursor() as curs:
                    curs.execute(STATUS_UPSERT_SQL, row_to_write)
                    curs.execute(STATUS_LOG_INSERT_SQL, row_to_write)
        finally:
            self.db_pool.putconn(db_conn)
        self.logger.info("Monitor %s status is now %s", update.monitor_id, update.status.value)

    def get_status(self, monitor_id):
        db_conn = self.db_pool.getconn()
        try:
            with db_conn as txn:
                with txn.cursor() as curs:
                    curs.execute(
                        "SELECT status, status_code, message, region FROM monitor_status WHERE monitor_id = %s",
                        (monitor_id,),
                    )
                    return curs.fetchone()
        finally:
            self.db_pool.putconn(db_conn)

    def close(self):
        self.db_pool.closeall()


def tabulate_result(cursor):
    headers = [column[0] for column in cursor.description]
    table = cursor.fetchall()
    return tabulate(table, headers=headers, tablefmt="psql")


def setup_logging():
    logging.basicConfig(level=loglevel_from_env())


def run_initdb(config, args):
    db_conn = psycopg2.connect(config.database_conn_str)
    init_db(db_conn)
    logging.info("Initialised database.")
    db_conn.close()


def run_display(config, args):
    with psycopg2.connect(config.database_conn_str) as txn:
        with txn.cursor() as curs:
            params = dict(limit=args.limit)
            optional_where = ""
            if args.monitor is not None:
                optional_where = "WHERE monitor_id = %(monitor_id)s"
                params["monitor_id"] = args.monitor
            if args.log:
                curs.execute(
                    f"""
                SELECT check_time, monitor_id, status, status_code, message, region
                FROM monitor_status_log
                {optional_where}
                ORDER BY check_time DESC, id DESC
                LIMIT %(limit)s
                """,
                    params,
                )
            else:
                curs.execute(
                    f"""
                SELECT monitor_id, status, status_code, message, region, updated_at
                FROM monitor_status
                {optional_where}
                ORDER BY monitor_id
                LIMIT %(limit)s
                """,
                    params,
                )
            print(tabulate_result(curs))


def run_status_app():
    parser = argparse.ArgumentParser(description=__doc__)
    subcommands = parser.add_subparsers()
    subcommands.add_parser("initdb").set_defaults(func=run_initdb)
    display_parser = subcommands.add_parser("display")
    display_parser.set_defaults(func=run_display)
    display_parser.add_argument("--log", action="store_true", help="Display the log of status changes")
    display_parser.add_argument("--monitor", help="Only display this monitor id")
    display_parser.add_argument("--limit", type=int, default=50, help="Display this many rows")
    args = parser.parse_args()
    setup_logging()
    config = StatusStoreConfig.from_environment()
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return
    func(config, args)
