"""
Campus Guardian Document Store — Database Schema & Connection Helpers
"""
import datetime
import sqlite3

COLLECTIONS = ("users", "incidents", "appointments", "sos_alerts", "guestLogs")


def get_conn(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def server_ts() -> str:
    # Server time is authoritative for every stored timestamp.
    return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def init_store_schema(db_path: str):
    """Create the documents table if it doesn't exist."""
    conn = get_conn(db_path)
    c = conn.cursor()
    # seq orders documents by insertion; it is the pagination cursor.
    c.execute("""
        CREATE TABLE IF NOT EXISTS documents (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            collection TEXT NOT NULL,
            doc_id TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            data TEXT NOT NULL,
            UNIQUE (collection, doc_id)
        )
    """)
    c.execute("CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents (collection, seq)")
    conn.commit()
    conn.close()
