"""Validate the local SQLite backend: accounts, sessions, schema and tables."""

import sqlite3
from datetime import datetime, timedelta

import pytest

from contractgov.database import REFRESH_TTL, DatabaseManager
from contractgov.exceptions import AuthError, BackendError


def expire_sessions(db):
    conn = sqlite3.connect(str(db.db_path))
    conn.execute("UPDATE sessions SET expires_at = ?",
                 ((datetime.now() - timedelta(minutes=1)).isoformat(),))
    conn.commit()
    conn.close()


class TestAccounts:
    """Validate sign-up, sign-in and token resolution."""

    def test_first_user_is_admin(self, db):
        first = db.sign_up("Primeiro@Orgao.gov.br", "senha")
        second = db.sign_up("segundo@orgao.gov.br", "senha")

        token = db.sign_in("primeiro@orgao.gov.br", "senha").access_token
        rows = db.select(token, "profiles")
        assert first.email == "primeiro@orgao.gov.br"
        assert rows[0]["role"] == "admin"

        token = db.sign_in("segundo@orgao.gov.br", "senha").access_token
        assert db.select(token, "profiles")[0]["id"] == second.id
        assert db.select(token, "profiles")[0]["role"] == "user"

    def test_duplicate_sign_up(self, db):
        db.sign_up("ana@orgao.gov.br", "senha")

        with pytest.raises(AuthError, match="already registered"):
            db.sign_up("ana@orgao.gov.br", "outra")

    def test_wrong_password(self, db):
        db.sign_up("ana@orgao.gov.br", "senha")

        with pytest.raises(AuthError, match="Invalid login credentials"):
            db.sign_in("ana@orgao.gov.br", "errada")

    def test_token_lifecycle(self, db):
        user = db.sign_up("ana@orgao.gov.br", "senha")
        session = db.sign_in("ana@orgao.gov.br", "senha")

        assert db.get_user(session.access_token).id == user.id

        db.sign_out(session.access_token)
        assert db.get_user(session.access_token) is None
        assert db.get_user(None) is None

    def test_expired_token(self, db):
        db.sign_up("ana@orgao.gov.br", "senha")
        session = db.sign_in("ana@orgao.gov.br", "senha")

        expire_sessions(db)

        assert db.get_user(session.access_token) is None
        with pytest.raises(BackendError) as exc:
            db.select(session.access_token, "contratos")
        assert exc.value.status_code == 401

    def test_refresh_after_expiry(self, db):
        user = db.sign_up("ana@orgao.gov.br", "senha")
        session = db.sign_in("ana@orgao.gov.br", "senha")
        expire_sessions(db)

        refreshed = db.refresh_session(session.refresh_token)

        assert refreshed.access_token != session.access_token
        assert db.get_user(refreshed.access_token).id == user.id
        with pytest.raises(AuthError, match="Invalid Refresh Token"):
            db.refresh_session(session.refresh_token)

    def test_stale_refresh_token(self, db):
        db.sign_up("ana@orgao.gov.br", "senha")
        session = db.sign_in("ana@orgao.gov.br", "senha")
        conn = sqlite3.connect(str(db.db_path))
        conn.execute("UPDATE sessions SET created_at = ?",
                     ((datetime.now() - REFRESH_TTL - timedelta(minutes=1)).isoformat(),))
        conn.commit()
        conn.close()

        with pytest.raises(AuthError):
            db.refresh_session(session.refresh_token)


class TestTables:
    """Validate column checks and schema migration."""

    def test_unknown_table_and_column(self, db):
        db.sign_up("ana@orgao.gov.br", "senha")
        token = db.sign_in("ana@orgao.gov.br", "senha").access_token

        with pytest.raises(BackendError) as exc:
            db.select(token, "vendors")
        assert exc.value.status_code == 404

        with pytest.raises(BackendError) as exc:
            db.select(token, "contratos", filters={"drop_table": 1})
        assert exc.value.status_code == 400

    def test_insert_sets_owner(self, db):
        user = db.sign_up("ana@orgao.gov.br", "senha")
        token = db.sign_in("ana@orgao.gov.br", "senha").access_token

        row = db.insert(token, "contratos", [{"cliente_orgao": "TJSP", "estado": "SP"}])[0]

        assert row["user_id"] == user.id
        assert row["id"]
        assert db.select(token, "contratos", embed="contatos")[0]["contatos"] == []

    def test_migrates_first_revision_schema(self, tmp_path):
        path = tmp_path / "old.db"
        conn = sqlite3.connect(str(path))
        conn.execute('''
            CREATE TABLE contratos (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                cliente_orgao TEXT NOT NULL,
                estado TEXT NOT NULL,
                valor_global REAL DEFAULT 0,
                status TEXT DEFAULT 'Pendente',
                qtde_plataformas INTEGER DEFAULT 0,
                qtde_elevadores INTEGER DEFAULT 0,
                objeto_contrato TEXT,
                data_inicio TEXT,
                data_encerramento TEXT,
                prazo_execucao TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT
            )
        ''')
        conn.execute("INSERT INTO contratos (id, user_id, cliente_orgao, estado, created_at) "
                     "VALUES ('c1', 'u1', 'Antigo', 'RJ', '2023-01-01')")
        conn.commit()
        conn.close()

        DatabaseManager(path)

        conn = sqlite3.connect(str(path))
        conn.row_factory = sqlite3.Row
        row = dict(conn.execute("SELECT * FROM contratos WHERE id = 'c1'").fetchone())
        conn.close()
        assert row["instalados_elevadores"] == 0
        assert row["instalados_plataformas"] == 0
        assert row["garantia_dias"] is None

    def test_migrates_sessions_without_refresh_token(self, tmp_path):
        path = tmp_path / "old.db"
        conn = sqlite3.connect(str(path))
        conn.execute("CREATE TABLE sessions (access_token TEXT PRIMARY KEY, user_id TEXT NOT NULL, "
                     "created_at TEXT NOT NULL, expires_at TEXT NOT NULL)")
        conn.commit()
        conn.close()

        db = DatabaseManager(path)
        db.sign_up("ana@orgao.gov.br", "senha")

        assert db.sign_in("ana@orgao.gov.br", "senha").refresh_token

    def test_statistics(self, db):
        db.sign_up("ana@orgao.gov.br", "senha")

        assert db.get_statistics() == {"total_users": 1, "total_contracts": 0, "total_contacts": 0}
