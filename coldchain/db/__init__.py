# Database module - engine, sessions and graph tables
from .engine import SessionLocal, get_session, init_db, session_scope, check_connection
from .schema import metadata, node_table, edge_table

__all__ = [
    "SessionLocal",
    "get_session",
    "init_db",
    "session_scope",
    "check_connection",
    "metadata",
    "node_table",
    "edge_table",
]
