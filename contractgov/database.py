"""
ContractGov - Database Module
Local SQLite backend with the same table and auth interface as the hosted
backend. Used for development, demos and tests.

Row-level rules mirror the hosted policies: a user only reads and writes
contracts whose user_id is theirs, contacts through their owning contract,
and their own profile.
"""

import sqlite3
import logging
import secrets
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

from contractgov.config import Config
from contractgov.exceptions import AuthError, BackendError
from contractgov.models import AuthSession, ROLE_ADMIN, ROLE_USER, User

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(hours=12)
REFRESH_TTL = timedelta(days=30)

TABLE_COLUMNS = {
    'contratos': {
        'id', 'user_id', 'cliente_orgao', 'estado', 'valor_global', 'status',
        'qtde_plataformas', 'qtde_elevadores', 'instalados_plataformas',
        'instalados_elevadores', 'objeto_contrato', 'data_inicio',
        'data_encerramento', 'prazo_execucao', 'data_conclusao_instalacao',
        'garantia_dias', 'created_at', 'updated_at',
    },
    'contatos': {'id', 'contrato_id', 'nome', 'email', 'telefone', 'created_at'},
    'profiles': {'id', 'email', 'nome', 'role', 'created_at'},
}

# child table -> (parent table, foreign key column)
FOREIGN_KEYS = {
    'contatos': ('contratos', 'contrato_id'),
}

# Columns added after the first schema revision
LATER_CONTRACT_COLUMNS = [
    ('instalados_plataformas', 'INTEGER DEFAULT 0'),
    ('instalados_elevadores', 'INTEGER DEFAULT 0'),
    ('data_conclusao_instalacao', 'TEXT'),
    ('garantia_dias', 'INTEGER'),
]

LATER_SESSION_COLUMNS = [
    ('refresh_token', 'TEXT'),
]


class DatabaseManager:
    """Manages the SQLite database standing in for the hosted backend."""

    def __init__(self, db_path: Path = None):
        self.db_path = Path(db_path or Config.DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_database()
        logger.info(f"Database initialized at {self.db_path}")

    def _get_connection(self):
        """Get database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
        return conn

    @contextmanager
    def _connection(self):
        """Yield the open transaction's connection, or a fresh autocommitting one."""
        tx_conn = getattr(self._local, 'conn', None)
        if tx_conn is not None:
            try:
                yield tx_conn
            except sqlite3.Error as e:
                raise BackendError(str(e)) from e
            return

        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise BackendError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self):
        """Group table operations so they commit or roll back together."""
        if getattr(self._local, 'conn', None) is not None:
            yield
            return

        conn = self._get_connection()
        self._local.conn = conn
        try:
            yield
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._local.conn = None
            conn.close()

    def _init_database(self):
        """Initialize database tables."""
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                email TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS sessions (
                access_token TEXT PRIMARY KEY,
                refresh_token TEXT,
                user_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                email TEXT,
                nome TEXT,
                role TEXT DEFAULT 'user',
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (id) REFERENCES users(id) ON DELETE CASCADE
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS contratos (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                cliente_orgao TEXT NOT NULL,
                estado TEXT NOT NULL,
                valor_global REAL DEFAULT 0,
                status TEXT DEFAULT 'Pendente',

                -- Units contracted vs installed
                qtde_plataformas INTEGER DEFAULT 0,
                qtde_elevadores INTEGER DEFAULT 0,

                objeto_contrato TEXT,

                -- Dates
                data_inicio TEXT,
                data_encerramento TEXT,
                prazo_execucao TEXT,

                created_at TEXT NOT NULL,
                updated_at TEXT,
                FOREIGN KEY (user_id) REFERENCES users(id)
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS contatos (
                id TEXT PRIMARY KEY,
                contrato_id TEXT NOT NULL,
                nome TEXT NOT NULL,
                email TEXT,
                telefone TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (contrato_id) REFERENCES contratos(id) ON DELETE CASCADE
            )
        ''')

        self._add_missing_columns(cursor, 'contratos', LATER_CONTRACT_COLUMNS)
        self._add_missing_columns(cursor, 'sessions', LATER_SESSION_COLUMNS)

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_contratos_user ON contratos(user_id)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_contatos_contrato ON contatos(contrato_id)')

        conn.commit()
        conn.close()

    def _add_missing_columns(self, cursor, table: str, columns):
        """Add columns introduced after a table's first revision to older databases."""
        cursor.execute(f'PRAGMA table_info({table})')
        existing = {row['name'] for row in cursor.fetchall()}
        for column, ddl in columns:
            if column not in existing:
                cursor.execute(f'ALTER TABLE {table} ADD COLUMN {column} {ddl}')
                logger.info(f"Added column {table}.{column}")

    # ==================
    # AUTH
    # ==================

    def sign_up(self, email: str, password: str) -> User:
        """Register a user and its profile. The first user is an administrator."""
        email = (email or '').strip().lower()
        if not email or not password:
            raise AuthError('E-mail e senha são obrigatórios.')

        user_id = str(uuid.uuid4())
        now = datetime.now().isoformat()
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT id FROM users WHERE email = ?', (email,))
            if cursor.fetchone():
                raise AuthError('User already registered')

            cursor.execute('SELECT COUNT(*) FROM users')
            role = ROLE_ADMIN if cursor.fetchone()[0] == 0 else ROLE_USER

            cursor.execute(
                'INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)',
                (user_id, email, generate_password_hash(password), now),
            )
            cursor.execute(
                'INSERT INTO profiles (id, email, role, created_at) VALUES (?, ?, ?, ?)',
                (user_id, email, role, now),
            )

        logger.info(f"Registered user {email} ({role})")
        return User(id=user_id, email=email)

    def _open_session(self, cursor, user_id: str, email: str) -> AuthSession:
        now = datetime.now()
        session = AuthSession(
            access_token=secrets.token_urlsafe(32),
            refresh_token=secrets.token_urlsafe(32),
            user=User(id=user_id, email=email),
        )
        cursor.execute(
            'INSERT INTO sessions (access_token, refresh_token, user_id, created_at, expires_at) '
            'VALUES (?, ?, ?, ?, ?)',
            (session.access_token, session.refresh_token, user_id,
             now.isoformat(), (now + SESSION_TTL).isoformat()),
        )
        return session

    def sign_in(self, email: str, password: str) -> AuthSession:
        email = (email or '').strip().lower()
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM users WHERE email = ?', (email,))
            row = cursor.fetchone()
            if not row or not check_password_hash(row['password_hash'], password or ''):
                raise AuthError('Invalid login credentials')

            return self._open_session(cursor, row['id'], row['email'])

    def refresh_session(self, refresh_token: str) -> AuthSession:
        """Trade a refresh token for a new session; the old one is revoked."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT s.access_token, s.created_at, u.id, u.email FROM sessions s
                JOIN users u ON u.id = s.user_id
                WHERE s.refresh_token = ?
            ''', (refresh_token or '',))
            row = cursor.fetchone()
            if not row or datetime.fromisoformat(row['created_at']) + REFRESH_TTL <= datetime.now():
                raise AuthError('Invalid Refresh Token')

            cursor.execute('DELETE FROM sessions WHERE access_token = ?', (row['access_token'],))
            return self._open_session(cursor, row['id'], row['email'])

    def sign_out(self, access_token: str) -> None:
        with self._connection() as conn:
            conn.execute('DELETE FROM sessions WHERE access_token = ?', (access_token,))

    def get_user(self, access_token: Optional[str]) -> Optional[User]:
        """Resolve a token to its user; expired or unknown tokens yield None."""
        if not access_token:
            return None
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT u.id, u.email, s.expires_at FROM sessions s
                JOIN users u ON u.id = s.user_id
                WHERE s.access_token = ?
            ''', (access_token,))
            row = cursor.fetchone()

        if not row:
            return None
        if datetime.fromisoformat(row['expires_at']) <= datetime.now():
            return None
        return User(id=row['id'], email=row['email'])

    # ==================
    # TABLE OPERATIONS
    # ==================

    def select(self, access_token: str, table: str, filters: Dict[str, Any] = None,
               order: Tuple[str, bool] = None, embed: str = None) -> List[Dict]:
        """Select rows visible to the token's user.

        order is (column, descending); embed names a child table whose rows
        are attached to each parent row under the child table's name.
        """
        user = self._require_user(access_token)
        self._check_columns(table, filters or {})

        where, params = self._scope(table, user)
        for column, value in (filters or {}).items():
            where.append(f't.{column} = ?')
            params.append(value)

        query = f"SELECT t.* FROM {table} t WHERE {' AND '.join(where)}"
        if order:
            column, descending = order
            self._check_columns(table, {column: None})
            direction = 'DESC' if descending else 'ASC'
            query += f' ORDER BY t.{column} {direction}, t.rowid {direction}'

        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            rows = [dict(row) for row in cursor.fetchall()]

            if embed:
                self._embed(cursor, table, embed, rows)

        return rows

    def insert(self, access_token: str, table: str, rows: List[Dict]) -> List[Dict]:
        """Insert rows and return them as stored."""
        user = self._require_user(access_token)
        inserted = []
        now = datetime.now().isoformat()

        with self._connection() as conn:
            cursor = conn.cursor()
            for row in rows:
                data = dict(row)
                data.setdefault('id', str(uuid.uuid4()))
                data.setdefault('created_at', now)
                self._check_columns(table, data)
                self._check_write(cursor, table, user, data)

                fields = list(data.keys())
                placeholders = ', '.join(['?' for _ in fields])
                cursor.execute(
                    f"INSERT INTO {table} ({', '.join(fields)}) VALUES ({placeholders})",
                    list(data.values()),
                )
                inserted.append(data)

        return inserted

    def update(self, access_token: str, table: str, values: Dict[str, Any],
               filters: Dict[str, Any]) -> List[Dict]:
        """Update the visible rows matching filters and return them."""
        user = self._require_user(access_token)
        data = {k: v for k, v in values.items() if k != 'id'}
        if table == 'contratos':
            data['updated_at'] = datetime.now().isoformat()
        self._check_columns(table, data)
        self._check_columns(table, filters)

        ids = [row['id'] for row in self.select(access_token, table, filters)]
        if not ids:
            return []

        with self._connection() as conn:
            cursor = conn.cursor()
            if table == 'contratos' and data.get('user_id', user.id) != user.id:
                raise BackendError('new row violates row-level security policy', status_code=403)

            fields = [f"{k} = ?" for k in data.keys()]
            for row_id in ids:
                cursor.execute(
                    f"UPDATE {table} SET {', '.join(fields)} WHERE id = ?",
                    list(data.values()) + [row_id],
                )

        return self.select(access_token, table, filters)

    def delete(self, access_token: str, table: str, filters: Dict[str, Any]) -> int:
        """Delete the visible rows matching filters; returns how many went."""
        ids = [row['id'] for row in self.select(access_token, table, filters)]
        if not ids:
            return 0

        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.executemany(f'DELETE FROM {table} WHERE id = ?', [(i,) for i in ids])

        return len(ids)

    # ==================
    # ROW-LEVEL RULES
    # ==================

    def _require_user(self, access_token: str) -> User:
        user = self.get_user(access_token)
        if user is None:
            raise BackendError('JWT expired or invalid', status_code=401)
        return user

    def _check_columns(self, table: str, data: Dict[str, Any]):
        if table not in TABLE_COLUMNS:
            raise BackendError(f"relation \"{table}\" does not exist", status_code=404)
        unknown = set(data) - TABLE_COLUMNS[table]
        if unknown:
            raise BackendError(f"Unknown columns for {table}: {', '.join(sorted(unknown))}", status_code=400)

    def _scope(self, table: str, user: User) -> Tuple[List[str], List[Any]]:
        if table == 'contratos':
            return ['t.user_id = ?'], [user.id]
        if table == 'contatos':
            return ['t.contrato_id IN (SELECT id FROM contratos WHERE user_id = ?)'], [user.id]
        return ['t.id = ?'], [user.id]

    def _check_write(self, cursor, table: str, user: User, data: Dict[str, Any]):
        if table == 'contratos':
            data.setdefault('user_id', user.id)
            allowed = data['user_id'] == user.id
        elif table == 'contatos':
            cursor.execute('SELECT user_id FROM contratos WHERE id = ?', (data.get('contrato_id'),))
            parent = cursor.fetchone()
            allowed = parent is not None and parent['user_id'] == user.id
        else:
            allowed = data.get('id') == user.id

        if not allowed:
            raise BackendError('new row violates row-level security policy', status_code=403)

    def _embed(self, cursor, table: str, child: str, rows: List[Dict]):
        parent, fk = FOREIGN_KEYS.get(child, (None, None))
        if parent != table:
            raise BackendError(f"Could not find a relationship between '{table}' and '{child}'", status_code=400)

        by_parent = {row['id']: row for row in rows}
        for row in rows:
            row[child] = []
        if not by_parent:
            return

        placeholders = ', '.join(['?' for _ in by_parent])
        cursor.execute(
            f'SELECT * FROM {child} WHERE {fk} IN ({placeholders}) ORDER BY created_at, rowid',
            list(by_parent.keys()),
        )
        for child_row in cursor.fetchall():
            by_parent[child_row[fk]][child].append(dict(child_row))

    # ==================
    # STATISTICS
    # ==================

    def get_statistics(self) -> Dict:
        """Get database statistics."""
        conn = self._get_connection()
        cursor = conn.cursor()

        stats = {}

        cursor.execute("SELECT COUNT(*) FROM users")
        stats['total_users'] = cursor.fetchone()[0]

        cursor.execute("SELECT COUNT(*) FROM contratos")
        stats['total_contracts'] = cursor.fetchone()[0]

        cursor.execute("SELECT COUNT(*) FROM contatos")
        stats['total_contacts'] = cursor.fetchone()[0]

        conn.close()
        return stats


# Global instance
_db_instance = None

def get_database() -> DatabaseManager:
    """Get or create database instance."""
    global _db_instance
    if _db_instance is None:
        _db_instance = DatabaseManager()
    return _db_instance
