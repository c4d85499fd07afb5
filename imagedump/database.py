# imagedump/database.py

import logging
from typing import Any, Dict, List, Tuple

import psycopg2
from psycopg2 import sql
from psycopg2.extras import execute_values

from .config import DatabaseConfig
from .errors import SinkFailure
from .formatter import parse_timestamp

logger = logging.getLogger(__name__)

# колонка таблицы -> поле записи вывода
COLUMNS = (
    ('path', 'Path'),
    ('inode_name', 'InodeName'),
    ('parent_path', 'ParentPath'),
    ('type', 'Type'),
    ('replication', 'Replication'),
    ('modification_time', 'ModificationTime'),
    ('access_time', 'AccessTime'),
    ('preferred_block_size', 'PreferredBlockSize'),
    ('blocks_count', 'BlocksCount'),
    ('file_size', 'FileSize'),
    ('ns_quota', 'NSQUOTA'),
    ('ds_quota', 'DSQUOTA'),
    ('permission', 'Permission'),
    ('user_name', 'UserName'),
    ('group_name', 'GroupName'),
    ('area', 'Area'),
    ('cluster_name', 'ClusterName'),
    ('namespace', 'NameSpace'),
    ('protocol', 'Protocol'),
    ('captured_at', '@timestamp'),
)

TIME_FIELDS = {'ModificationTime', 'AccessTime', '@timestamp'}

CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS {table} (
        path TEXT PRIMARY KEY,
        inode_name TEXT NOT NULL,
        parent_path TEXT NOT NULL,
        type VARCHAR(16) NOT NULL,
        replication INTEGER NOT NULL,
        modification_time TIMESTAMP,
        access_time TIMESTAMP,
        preferred_block_size BIGINT NOT NULL,
        blocks_count INTEGER NOT NULL,
        file_size BIGINT NOT NULL,
        ns_quota BIGINT NOT NULL,
        ds_quota BIGINT NOT NULL,
        permission VARCHAR(16) NOT NULL,
        user_name TEXT,
        group_name TEXT,
        area TEXT,
        cluster_name TEXT,
        namespace TEXT,
        protocol TEXT,
        captured_at TIMESTAMP
    )
"""

class Database:
    def __init__(self, host: str, port: int, database: str, user: str, password: str,
                 table: str = DatabaseConfig.TABLE):
        """Инициализация подключения к базе данных"""
        self.table = table
        try:
            self.conn = psycopg2.connect(
                host=host,
                port=port,
                database=database,
                user=user,
                password=password
            )
        except psycopg2.Error as e:
            raise SinkFailure(f"Cannot connect to database: {e}") from e
        self.conn.autocommit = False
        logger.info("Database connection established")

    def close(self):
        """Закрытие соединения с базой данных"""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Database connection closed")

    def ensure_table(self) -> None:
        """Создание таблицы записей, если её нет"""
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql.SQL(CREATE_TABLE).format(table=sql.Identifier(self.table)))
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            logger.error(f"Error creating table {self.table}: {str(e)}")
            raise SinkFailure(str(e)) from e

    @staticmethod
    def _row(record: Dict[str, Any]) -> Tuple:
        return tuple(
            parse_timestamp(record[name]) if name in TIME_FIELDS else record[name]
            for _, name in COLUMNS
        )

    def save_records_bulk(self, records: List[Dict[str, Any]]) -> None:
        """Пакетное сохранение записей"""
        if not records:
            return

        columns = [column for column, _ in COLUMNS]
        query = sql.SQL("""
            INSERT INTO {table} ({columns})
            VALUES %s
            ON CONFLICT (path)
            DO UPDATE SET {updates}
        """).format(
            table=sql.Identifier(self.table),
            columns=sql.SQL(', ').join(map(sql.Identifier, columns)),
            updates=sql.SQL(', ').join(
                sql.SQL('{0} = EXCLUDED.{0}').format(sql.Identifier(column))
                for column in columns if column != 'path'
            )
        )

        try:
            with self.conn.cursor() as cur:
                execute_values(cur, query, [self._row(record) for record in records])
            self.conn.commit()
            logger.debug(f"Saved {len(records)} records")

        except psycopg2.Error as e:
            self.conn.rollback()
            logger.error(f"Error saving records: {str(e)}")
            raise SinkFailure(str(e)) from e

    def get_snapshot_stats(self) -> Tuple[int, int, int]:
        """
        Статистика по сохранённому снимку:
        возвращает (количество директорий, количество файлов, общий размер файлов)
        """
        query = sql.SQL("""
            SELECT
                COUNT(*) FILTER (WHERE type = 'directory'),
                COUNT(*) FILTER (WHERE type = 'file'),
                COALESCE(SUM(file_size), 0)
            FROM {table}
        """).format(table=sql.Identifier(self.table))
        try:
            with self.conn.cursor() as cur:
                cur.execute(query)
                result = cur.fetchone()
                return tuple(result) if result else (0, 0, 0)

        except psycopg2.Error as e:
            logger.error(f"Error getting snapshot stats: {str(e)}")
            return (0, 0, 0)
