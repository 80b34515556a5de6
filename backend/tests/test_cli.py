# Overview: Flask CLI commands exercised through the click test runner.

import json

from hub.services.ledger_service import deliver_maleta
from hub.services.state_store import commit_atomically


class TestDataCommands:
    def test_export_then_import(self, app, db_session, rep_maria, product_a, tmp_path):
        commit_atomically(lambda: deliver_maleta(representative_id=rep_maria.id, items={product_a.id: 2}))
        runner = app.test_cli_runner()
        path = tmp_path / "backup.json"

        result = runner.invoke(args=["data", "export", str(path)])
        assert result.exit_code == 0, result.output
        assert "PASS Exported 1 representatives, 1 products, 1 movements" in result.output

        backup = json.loads(path.read_text(encoding="utf-8"))
        assert backup["movs"][0]["type"] == "DELIVERED"

        result = runner.invoke(args=["data", "import", str(path), "--yes"])
        assert result.exit_code == 0, result.output
        assert "PASS Restored 1 representatives, 1 products, 1 movements" in result.output

    def test_import_rejects_bad_backup(self, app, db_session, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text('{"reps": [], "prods": []}', encoding="utf-8")

        result = app.test_cli_runner().invoke(args=["data", "import", str(path), "--yes"])
        assert result.exit_code == 1
        assert "FAIL Backup rejected" in result.output


class TestCycleAndMaletaCommands:
    def test_refresh_overdue(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["cycles", "refresh-overdue"])
        assert result.exit_code == 0
        assert "PASS 0 cycle(s) marked OVERDUE" in result.output

    def test_summary_table(self, app, db_session, rep_maria, product_a):
        commit_atomically(lambda: deliver_maleta(representative_id=rep_maria.id, items={product_a.id: 3}))

        result = app.test_cli_runner().invoke(args=["maletas", "summary"])
        assert result.exit_code == 0
        assert "Maria Souza" in result.output
        assert "300.00" in result.output

    def test_summary_empty(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["maletas", "summary"])
        assert "No representatives found." in result.output

    def test_init_db_is_idempotent(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init-db"])
        assert result.exit_code == 0
        assert "PASS Database schema ready." in result.output
