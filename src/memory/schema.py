"""Table definitions, indexes and bootstrap rows for conversation memory."""

CREATE_TABLES: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS conversations (
        id          TEXT PRIMARY KEY,
        resource_id TEXT NOT NULL,
        title       TEXT NOT NULL DEFAULT '',
        metadata    TEXT NOT NULL DEFAULT '{}',
        created_at  TEXT NOT NULL,
        updated_at  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id              TEXT PRIMARY KEY,
        conversation_id TEXT NOT NULL,
        role            TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system', 'tool')),
        content         TEXT NOT NULL,
        created_at      TEXT NOT NULL,
        FOREIGN KEY (conversation_id) REFERENCES conversations (id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agent_history (
        key        TEXT PRIMARY KEY,
        value      TEXT NOT NULL,
        agent_id   TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agent_history_steps (
        key        TEXT PRIMARY KEY,
        value      TEXT NOT NULL,
        history_id TEXT NOT NULL,
        agent_id   TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (history_id) REFERENCES agent_history (key) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS agent_history_events (
        key        TEXT PRIMARY KEY,
        value      TEXT NOT NULL,
        history_id TEXT NOT NULL,
        agent_id   TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (history_id) REFERENCES agent_history (key) ON DELETE CASCADE
    )
    """,
)

CREATE_INDEXES: tuple[str, ...] = (
    "CREATE INDEX IF NOT EXISTS idx_conversations_resource ON conversations (resource_id)",
    "CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages (conversation_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_history_agent ON agent_history (agent_id)",
    "CREATE INDEX IF NOT EXISTS idx_steps_history ON agent_history_steps (history_id)",
    "CREATE INDEX IF NOT EXISTS idx_steps_agent ON agent_history_steps (agent_id)",
    "CREATE INDEX IF NOT EXISTS idx_events_history ON agent_history_events (history_id)",
    "CREATE INDEX IF NOT EXISTS idx_events_agent ON agent_history_events (agent_id)",
)

INSERT_BOOTSTRAP_CONVERSATION = """
INSERT OR IGNORE INTO conversations (id, resource_id, title, metadata, created_at, updated_at)
VALUES (?, ?, ?, '{}', ?, ?)
"""

SYSTEM_CONVERSATION_TITLE = "System History Entries"
DEFAULT_CONVERSATION_TITLE = "Default Conversation"
