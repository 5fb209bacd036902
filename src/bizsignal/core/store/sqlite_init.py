"""SQLite 数据库初始化

PRAGMA 配置 + business_events / generated_tasks 两张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# business_events 表 DDL
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS business_events (
    event_id            TEXT PRIMARY KEY,
    created_at          TEXT NOT NULL,
    event_type          TEXT NOT NULL,
    category            TEXT NOT NULL,
    severity            TEXT NOT NULL DEFAULT 'medium',
    source_module       TEXT NOT NULL,
    subsidiary          TEXT NOT NULL DEFAULT '',
    entity_type         TEXT NOT NULL,
    entity_id           TEXT NOT NULL,
    entity_name         TEXT NOT NULL DEFAULT '',
    project_id          TEXT,
    project_name        TEXT,
    title               TEXT NOT NULL DEFAULT '',
    description         TEXT NOT NULL DEFAULT '',
    previous_state      TEXT,
    current_state       TEXT NOT NULL DEFAULT '{}',
    changed_fields      TEXT NOT NULL DEFAULT '[]',
    triggered_by        TEXT,
    triggered_by_name   TEXT,
    triggered_at        TEXT NOT NULL,
    idempotency_key     TEXT,
    metadata            TEXT NOT NULL DEFAULT '{}',
    status              TEXT NOT NULL DEFAULT 'pending',
    processed_at        TEXT,
    generated_task_ids  TEXT NOT NULL DEFAULT '[]',
    error               TEXT
);
"""

_EVENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_events_status ON business_events(status, created_at DESC);",
    (
        "CREATE INDEX IF NOT EXISTS idx_events_module "
        "ON business_events(source_module, created_at DESC);"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_events_entity "
        "ON business_events(entity_type, entity_id, created_at DESC);"
    ),
    # 幂等键唯一约束（仅对非 NULL 值生效）
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_events_idempotency_key "
        "ON business_events(idempotency_key) WHERE idempotency_key IS NOT NULL;"
    ),
]

# generated_tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS generated_tasks (
    task_id             TEXT PRIMARY KEY,
    business_event_id   TEXT NOT NULL,
    template_id         TEXT NOT NULL,
    template_version    INTEGER NOT NULL DEFAULT 1,
    title               TEXT NOT NULL,
    description         TEXT NOT NULL DEFAULT '',
    priority            TEXT NOT NULL DEFAULT 'medium',
    status              TEXT NOT NULL DEFAULT 'pending',
    assignment_strategy TEXT NOT NULL,
    assign_to_role      TEXT,
    assigned_to         TEXT,
    assigned_to_name    TEXT,
    assigned_at         TEXT,
    due_date            TEXT NOT NULL,
    checklist_items     TEXT NOT NULL DEFAULT '[]',
    checklist_progress  INTEGER NOT NULL DEFAULT 0,
    source_module       TEXT NOT NULL,
    subsidiary          TEXT NOT NULL DEFAULT '',
    entity_type         TEXT NOT NULL,
    entity_id           TEXT NOT NULL,
    entity_name         TEXT NOT NULL DEFAULT '',
    project_id          TEXT,
    project_name        TEXT,
    related_task_ids    TEXT NOT NULL DEFAULT '[]',
    parent_task_id      TEXT,
    created_by          TEXT NOT NULL DEFAULT 'system',
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    started_at          TEXT,
    completed_at        TEXT,

    FOREIGN KEY (business_event_id) REFERENCES business_events(event_id)
);
"""

_TASKS_INDEXES = [
    # 去重键：同一事件 + 同一模板只能生成一个任务
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_event_template "
        "ON generated_tasks(business_event_id, template_id);"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_tasks_entity "
        "ON generated_tasks(entity_type, entity_id, created_at DESC);"
    ),
    "CREATE INDEX IF NOT EXISTS idx_tasks_project ON generated_tasks(project_id, created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assignee ON generated_tasks(assigned_to, due_date);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_status_due ON generated_tasks(status, due_date);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    await conn.execute(_EVENTS_DDL)
    await conn.execute(_TASKS_DDL)

    for idx_sql in _EVENTS_INDEXES + _TASKS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效"""
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
