"""Add line-group conservation trigger.

Revision: 002_add_line_group_trigger
Created:  2026-10-12

The service layer checks every group after each mutation. This trigger is
the database-side backstop for writes that bypass the services: at commit,
every touched group must still satisfy

    SUM(line_quantity) = sold_total
    SUM(amount)        = sold_amount   (within one cent)

A CHECK constraint cannot aggregate sibling rows, hence a trigger.

Deferred execution:
  allocate() inserts the new allocation rows and only then shrinks the
  remainder. Between those flushes the group is over-allocated. The trigger
  is a CONSTRAINT TRIGGER ... DEFERRABLE INITIALLY DEFERRED so it runs at
  COMMIT, when only the final state is visible.

A group with no rows left (remainder deleted with its allocations) passes.

PostgreSQL only. Test runs on SQLite build the schema with create_all()
and rely on the service-layer check.

Append-only: never edit this file once it has been applied.
"""

from __future__ import annotations

from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "002_add_line_group_trigger"
down_revision: str | None = "001_initial_schema"
branch_labels: tuple | None = None
depends_on: tuple | None = None


# ── SQL definitions ────────────────────────────────────────────────────────

_CREATE_FUNCTION = """
CREATE OR REPLACE FUNCTION fn_check_line_group()
RETURNS TRIGGER
LANGUAGE plpgsql
AS $$
DECLARE
    v_group_id     VARCHAR(32);
    v_rows         INTEGER;
    v_qty_sum      NUMERIC(12, 2);
    v_amount_sum   NUMERIC(14, 2);
    v_sold_total   NUMERIC(10, 2);
    v_sold_amount  NUMERIC(12, 2);
BEGIN
    IF TG_OP = 'DELETE' THEN
        v_group_id := OLD.group_id;
    ELSE
        v_group_id := NEW.group_id;
    END IF;

    SELECT COUNT(*),
           COALESCE(SUM(line_quantity), 0),
           COALESCE(SUM(amount), 0),
           MAX(sold_total),
           MAX(sold_amount)
      INTO v_rows, v_qty_sum, v_amount_sum, v_sold_total, v_sold_amount
      FROM project_lines
     WHERE group_id = v_group_id;

    IF v_rows = 0 THEN
        RETURN NULL;
    END IF;

    IF v_qty_sum <> v_sold_total THEN
        RAISE EXCEPTION
            'line group % quantities sum to %, sold total is %',
            v_group_id, v_qty_sum, v_sold_total
            USING ERRCODE = '23514';  -- check_violation
    END IF;

    IF ABS(v_amount_sum - v_sold_amount) > 0.01 THEN
        RAISE EXCEPTION
            'line group % amounts sum to %, sold amount is %',
            v_group_id, v_amount_sum, v_sold_amount
            USING ERRCODE = '23514';
    END IF;

    RETURN NULL;  -- ignored for AFTER triggers
END;
$$;
"""

_CREATE_TRIGGER = """
CREATE CONSTRAINT TRIGGER trg_project_lines_group_check
    AFTER INSERT OR UPDATE OR DELETE
    ON project_lines
    DEFERRABLE INITIALLY DEFERRED
    FOR EACH ROW
    EXECUTE FUNCTION fn_check_line_group();
"""

_DROP_TRIGGER = "DROP TRIGGER IF EXISTS trg_project_lines_group_check ON project_lines;"
_DROP_FUNCTION = "DROP FUNCTION IF EXISTS fn_check_line_group();"


def upgrade() -> None:
    # Function first: the trigger references it.
    op.execute(_CREATE_FUNCTION)
    op.execute(_CREATE_TRIGGER)


def downgrade() -> None:
    op.execute(_DROP_TRIGGER)
    op.execute(_DROP_FUNCTION)
