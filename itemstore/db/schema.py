"""Database schema DDL: the single ``test`` table holding grouped items."""

ITEMS_TABLE = "test"

SCHEMA_DDL = """
-- ==========================================================================
-- Items (rows sharing a groupId were committed by one batch write)
-- ==========================================================================
CREATE TABLE IF NOT EXISTS test (
    id      INTEGER PRIMARY KEY AUTOINCREMENT,
    groupId TEXT NOT NULL,
    name    TEXT NOT NULL
);
"""
