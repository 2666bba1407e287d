from typing import Any, Dict, Optional

from psycopg import connect, sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from config.logging_config import log


class DocumentStore:
    """
    Listing documents in a PostgreSQL JSONB table, one row per identity.
    The table plays the role of a document collection.
    """

    def __init__(self, dsn: str, collection_name: str = "properties", connect_timeout: int = 30):
        self.dsn = dsn
        self.collection_name = collection_name
        self.connect_timeout = connect_timeout

    def _connect(self):
        return connect(self.dsn, connect_timeout=self.connect_timeout)

    def setup_schema(self) -> None:
        query = sql.SQL(
            """
            CREATE TABLE IF NOT EXISTS {table} (
                identity TEXT PRIMARY KEY,
                source TEXT NOT NULL,
                city TEXT NOT NULL,
                document JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        ).format(table=sql.Identifier(self.collection_name))
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(query)
            conn.commit()
        log.info(f"Document collection '{self.collection_name}' ready")

    def upsert(self, document: Dict[str, Any]) -> None:
        query = sql.SQL(
            """
            INSERT INTO {table} (identity, source, city, document)
            VALUES (%(identity)s, %(source)s, %(city)s, %(document)s)
            ON CONFLICT (identity)
            DO UPDATE SET
                document = EXCLUDED.document,
                updated_at = now();
            """
        ).format(table=sql.Identifier(self.collection_name))
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    query,
                    {
                        "identity": document["identity"],
                        "source": document["source"],
                        "city": document["city"],
                        "document": Jsonb(document),
                    },
                )
            conn.commit()

    def get(self, identity: str) -> Optional[Dict[str, Any]]:
        query = sql.SQL("SELECT document FROM {table} WHERE identity = %s").format(
            table=sql.Identifier(self.collection_name)
        )
        with self._connect() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, (identity,))
                row = cur.fetchone()
        return row["document"] if row else None
