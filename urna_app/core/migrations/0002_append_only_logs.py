from __future__ import annotations

from django.db import migrations

APPEND_ONLY_TABLES = ("core_nominationlog", "core_votelog")


def _append_only_sql(table: str) -> str:
    return f"""
CREATE OR REPLACE FUNCTION {table}_append_only() RETURNS trigger AS $$
BEGIN
    RAISE EXCEPTION '{table} rows are append-only (% is not allowed)', TG_OP;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS {table}_append_only_trg ON {table};
CREATE TRIGGER {table}_append_only_trg
BEFORE UPDATE OR DELETE ON {table}
FOR EACH ROW
EXECUTE FUNCTION {table}_append_only();
"""


def _append_only_sql_reverse(table: str) -> str:
    return f"""
DROP TRIGGER IF EXISTS {table}_append_only_trg ON {table};
DROP FUNCTION IF EXISTS {table}_append_only();
"""


def install_triggers(apps, schema_editor) -> None:
    # plpgsql triggers only; other backends rely on the model-level guard.
    if schema_editor.connection.vendor != "postgresql":
        return
    for table in APPEND_ONLY_TABLES:
        schema_editor.execute(_append_only_sql(table), params=None)


def remove_triggers(apps, schema_editor) -> None:
    if schema_editor.connection.vendor != "postgresql":
        return
    for table in APPEND_ONLY_TABLES:
        schema_editor.execute(_append_only_sql_reverse(table), params=None)


class Migration(migrations.Migration):
    dependencies = [
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(install_triggers, remove_triggers),
    ]
