# Shared with the local identity backend, which owns the rows but not the schema.
AUTH_USERS_DDL = """
CREATE TABLE IF NOT EXISTS auth_users (
    id TEXT PRIMARY KEY,
    email TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    user_metadata TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    last_sign_in_at TEXT
)
"""
