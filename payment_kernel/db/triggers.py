"""
Module: payment_kernel.db.triggers
Responsibility: Installing and removing database-level immutability triggers
    (Layer 2 of 2).  This is the database-level complement to the ORM-level
    listeners in db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only.  MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - notification_logs: no UPDATE, no DELETE.
    - reconciliation_resolutions: no UPDATE, no DELETE.
    - payment_buffers: no DELETE; a verified buffer cannot be un-verified or
      re-linked to another order.

Failure modes:
    - SQLite RAISE(ABORT) / PostgreSQL RAISE EXCEPTION on violation (surfaced
      by SQLAlchemy as IntegrityError or DBAPIError).
    - ValueError for a dialect without trigger support.
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

from payment_kernel.logging_config import get_logger

logger = get_logger("db.triggers")

# (trigger name, table)
TRIGGERS: tuple[tuple[str, str], ...] = (
    ("trg_notification_logs_no_update", "notification_logs"),
    ("trg_notification_logs_no_delete", "notification_logs"),
    ("trg_resolutions_no_update", "reconciliation_resolutions"),
    ("trg_resolutions_no_delete", "reconciliation_resolutions"),
    ("trg_payment_buffers_no_delete", "payment_buffers"),
    ("trg_payment_buffers_claim_final", "payment_buffers"),
)

_SQLITE_DDL: tuple[str, ...] = (
    """
    CREATE TRIGGER IF NOT EXISTS trg_notification_logs_no_update
    BEFORE UPDATE ON notification_logs
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: notification_logs is append-only');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_notification_logs_no_delete
    BEFORE DELETE ON notification_logs
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: notification_logs is append-only');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_resolutions_no_update
    BEFORE UPDATE ON reconciliation_resolutions
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: reconciliation_resolutions is append-only');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_resolutions_no_delete
    BEFORE DELETE ON reconciliation_resolutions
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: reconciliation_resolutions is append-only');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_payment_buffers_no_delete
    BEFORE DELETE ON payment_buffers
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: payment_buffers are retained for audit');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_payment_buffers_claim_final
    BEFORE UPDATE ON payment_buffers
    WHEN OLD.verified AND (
        NOT NEW.verified
        OR NEW.linked_order_id IS NOT OLD.linked_order_id
        OR NEW.verified_at IS NOT OLD.verified_at
    )
    BEGIN
        SELECT RAISE(ABORT, 'IMMUTABILITY_VIOLATION: payment buffer claim is final');
    END
    """,
)

_POSTGRES_DDL: tuple[str, ...] = (
    """
    CREATE OR REPLACE FUNCTION payment_reject_append_only() RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: % is append-only', TG_TABLE_NAME;
    END;
    $$ LANGUAGE plpgsql
    """,
    """
    CREATE OR REPLACE FUNCTION payment_buffer_claim_final() RETURNS trigger AS $$
    BEGIN
        IF OLD.verified AND (
            NOT NEW.verified
            OR NEW.linked_order_id IS DISTINCT FROM OLD.linked_order_id
            OR NEW.verified_at IS DISTINCT FROM OLD.verified_at
        ) THEN
            RAISE EXCEPTION 'IMMUTABILITY_VIOLATION: payment buffer claim is final';
        END IF;
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql
    """,
    """
    CREATE OR REPLACE TRIGGER trg_notification_logs_no_update
    BEFORE UPDATE ON notification_logs
    FOR EACH ROW EXECUTE FUNCTION payment_reject_append_only()
    """,
    """
    CREATE OR REPLACE TRIGGER trg_notification_logs_no_delete
    BEFORE DELETE ON notification_logs
    FOR EACH ROW EXECUTE FUNCTION payment_reject_append_only()
    """,
    """
    CREATE OR REPLACE TRIGGER trg_resolutions_no_update
    BEFORE UPDATE ON reconciliation_resolutions
    FOR EACH ROW EXECUTE FUNCTION payment_reject_append_only()
    """,
    """
    CREATE OR REPLACE TRIGGER trg_resolutions_no_delete
    BEFORE DELETE ON reconciliation_resolutions
    FOR EACH ROW EXECUTE FUNCTION payment_reject_append_only()
    """,
    """
    CREATE OR REPLACE TRIGGER trg_payment_buffers_no_delete
    BEFORE DELETE ON payment_buffers
    FOR EACH ROW EXECUTE FUNCTION payment_reject_append_only()
    """,
    """
    CREATE OR REPLACE TRIGGER trg_payment_buffers_claim_final
    BEFORE UPDATE ON payment_buffers
    FOR EACH ROW EXECUTE FUNCTION payment_buffer_claim_final()
    """,
)


def _ddl_for(engine: Engine) -> tuple[str, ...]:
    dialect = engine.dialect.name
    if dialect == "sqlite":
        return _SQLITE_DDL
    if dialect == "postgresql":
        return _POSTGRES_DDL
    raise ValueError(f"Immutability triggers not available for dialect '{dialect}'")


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install all immutability triggers.  Idempotent.

    Preconditions: tables exist (create_all has run).
    """
    with engine.begin() as conn:
        for ddl in _ddl_for(engine):
            conn.execute(text(ddl))

    logger.info(
        "immutability_triggers_installed",
        extra={"dialect": engine.dialect.name, "count": len(TRIGGERS)},
    )


def uninstall_immutability_triggers(engine: Engine) -> None:
    """Drop all immutability triggers if present.  FOR TESTING AND TEARDOWN."""
    dialect = engine.dialect.name
    with engine.begin() as conn:
        for name, table in TRIGGERS:
            if dialect == "postgresql":
                conn.execute(text(f"DROP TRIGGER IF EXISTS {name} ON {table}"))
            else:
                conn.execute(text(f"DROP TRIGGER IF EXISTS {name}"))


def triggers_installed(engine: Engine) -> set[str]:
    """Return the names of installed immutability triggers."""
    dialect = engine.dialect.name
    with engine.connect() as conn:
        if dialect == "sqlite":
            rows = conn.execute(
                text("SELECT name FROM sqlite_master WHERE type = 'trigger'")
            )
        else:
            rows = conn.execute(
                text("SELECT tgname FROM pg_trigger WHERE NOT tgisinternal")
            )
        names = {row[0] for row in rows}
    return names & {name for name, _ in TRIGGERS}
