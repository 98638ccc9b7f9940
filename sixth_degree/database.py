import sqlite3
import time
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, List, Optional, TypeVar

from sixth_degree.config import DATABASE_PATH, DB_TIMEOUT_SECONDS
from sixth_degree.errors import PersonAlreadyExists, PersonNotFound
from sixth_degree.models import Connection, Person

logger = logging.getLogger(__name__)

T = TypeVar('T')

PERSON_COLUMNS = 'id, name, wikipedia_url, category, created_at, updated_at'
CONNECTION_COLUMNS = 'id, from_person_id, to_person_id, created_at'


def _parse_timestamp(value) -> Optional[datetime]:
    # SQLite CURRENT_TIMESTAMP is "YYYY-MM-DD HH:MM:SS"
    return datetime.fromisoformat(value) if value else None


def _row_to_person(row: sqlite3.Row) -> Person:
    return Person(
        id=row['id'],
        name=row['name'],
        wikipedia_url=row['wikipedia_url'],
        category=row['category'],
        created_at=_parse_timestamp(row['created_at']),
        updated_at=_parse_timestamp(row['updated_at']),
    )


def _row_to_connection(row: sqlite3.Row) -> Connection:
    return Connection(
        id=row['id'],
        from_person_id=row['from_person_id'],
        to_person_id=row['to_person_id'],
        created_at=_parse_timestamp(row['created_at']),
    )


class EntityStore:
    """
    Durable store of persons and their directed connections

    Backed by SQLite. Every operation opens its own short-lived connection,
    so one store instance can be shared by concurrent request threads.
    """

    def __init__(self, db_path: Optional[str] = None, timeout: float = DB_TIMEOUT_SECONDS):
        self.db_path = str(db_path or DATABASE_PATH)
        self.timeout = timeout

    @contextmanager
    def get_db(self):
        """Context manager for database connections with proper timeout"""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        # Foreign key enforcement is per connection in SQLite
        conn.execute('PRAGMA foreign_keys=ON')
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            raise e
        finally:
            conn.close()

    def init_db(self):
        """Initialize the database with required tables and enable WAL mode"""
        with self.get_db() as conn:
            cursor = conn.cursor()

            # Multiple readers while a writer is active
            cursor.execute('PRAGMA journal_mode=WAL')
            cursor.execute(f'PRAGMA busy_timeout={int(self.timeout * 1000)}')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS persons (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name VARCHAR(255) NOT NULL UNIQUE,
                    wikipedia_url VARCHAR(500) NOT NULL,
                    category VARCHAR(100),
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')

            # No uniqueness on (from, to): duplicate edges are allowed
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS connections (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    from_person_id INTEGER NOT NULL,
                    to_person_id INTEGER NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY (from_person_id) REFERENCES persons (id) ON DELETE CASCADE,
                    FOREIGN KEY (to_person_id) REFERENCES persons (id) ON DELETE CASCADE
                )
            ''')

            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_connections_from ON connections(from_person_id)
            ''')
            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_connections_to ON connections(to_person_id)
            ''')

        logger.info(f"Database initialized at {self.db_path}")

    def _write_with_retry(self, operation: Callable[[sqlite3.Connection], T], max_retries: int = 3) -> T:
        """
        Run a write operation, retrying when the database is locked

        Args:
            operation: Callable receiving an open connection
            max_retries: Maximum number of retry attempts (default: 3)

        Returns:
            Whatever the operation returns

        Raises:
            sqlite3.OperationalError: If database remains locked after all retries
        """
        last_exception = None

        for attempt in range(max_retries):
            try:
                with self.get_db() as conn:
                    return operation(conn)

            except sqlite3.OperationalError as e:
                last_exception = e
                error_str = str(e).lower()
                if 'locked' in error_str or 'busy' in error_str:
                    if attempt < max_retries - 1:
                        # Exponential backoff: 0.1s, 0.2s, 0.4s
                        sleep_time = 0.1 * (2 ** attempt)
                        logger.warning(
                            f"Database locked, retrying in {sleep_time}s (attempt {attempt + 1}/{max_retries})"
                        )
                        time.sleep(sleep_time)
                        continue
                raise

        if last_exception:
            raise last_exception

    def list_persons(self) -> List[Person]:
        """Get all persons ordered by name"""
        with self.get_db() as conn:
            rows = conn.execute(f'SELECT {PERSON_COLUMNS} FROM persons ORDER BY name ASC').fetchall()
            return [_row_to_person(row) for row in rows]

    def list_connections(self) -> List[Connection]:
        """Get all connections in insertion order"""
        with self.get_db() as conn:
            rows = conn.execute(f'SELECT {CONNECTION_COLUMNS} FROM connections ORDER BY id ASC').fetchall()
            return [_row_to_connection(row) for row in rows]

    def find_person_by_name(self, name: str) -> Person:
        """
        Resolve an exact person name

        Raises:
            PersonNotFound: If no person has this name
        """
        with self.get_db() as conn:
            row = conn.execute(
                f'SELECT {PERSON_COLUMNS} FROM persons WHERE name = ?', (name,)
            ).fetchone()
        if row is None:
            raise PersonNotFound(name)
        return _row_to_person(row)

    def get_person(self, person_id: int) -> Optional[Person]:
        with self.get_db() as conn:
            row = conn.execute(
                f'SELECT {PERSON_COLUMNS} FROM persons WHERE id = ?', (person_id,)
            ).fetchone()
        return _row_to_person(row) if row else None

    def count_persons(self) -> int:
        with self.get_db() as conn:
            return conn.execute('SELECT COUNT(*) AS total FROM persons').fetchone()['total']

    def count_connections(self) -> int:
        with self.get_db() as conn:
            return conn.execute('SELECT COUNT(*) AS total FROM connections').fetchone()['total']

    def create_person(self, name: str, wikipedia_url: str, category: Optional[str] = None) -> Person:
        """
        Insert a person

        Raises:
            PersonAlreadyExists: If the name is taken
        """
        def insert(conn):
            cursor = conn.execute('''
                INSERT INTO persons (name, wikipedia_url, category)
                VALUES (?, ?, ?)
            ''', (name, wikipedia_url, category))
            return cursor.lastrowid

        try:
            person_id = self._write_with_retry(insert)
        except sqlite3.IntegrityError as e:
            raise PersonAlreadyExists(name) from e

        return self.get_person(person_id)

    def create_connection(self, from_person_id: int, to_person_id: int) -> Connection:
        """
        Insert a directed connection between two existing persons

        Raises:
            PersonNotFound: If either endpoint id is unknown
        """
        for person_id in (from_person_id, to_person_id):
            if self.get_person(person_id) is None:
                raise PersonNotFound(person_id)

        def insert(conn):
            cursor = conn.execute('''
                INSERT INTO connections (from_person_id, to_person_id)
                VALUES (?, ?)
            ''', (from_person_id, to_person_id))
            row = conn.execute(
                f'SELECT {CONNECTION_COLUMNS} FROM connections WHERE id = ?', (cursor.lastrowid,)
            ).fetchone()
            return _row_to_connection(row)

        try:
            return self._write_with_retry(insert)
        except sqlite3.IntegrityError as e:
            # An endpoint was deleted between the existence check and the insert
            missing = from_person_id if self.get_person(from_person_id) is None else to_person_id
            raise PersonNotFound(missing) from e
