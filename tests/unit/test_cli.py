"""
Unit Tests - Command Line Interface
"""
import json

import pytest

from multistore_dashboard import cli
from multistore_dashboard import services
from multistore_dashboard.data_sources.base import Page
from multistore_dashboard.exceptions import AuthError


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "cli.sqlite3")


@pytest.fixture(autouse=True)
def offline_context(fake_pager, monkeypatch):
    """Route every CLI command through the in-memory pager."""
    for name in ("OZON_CLIENT_ID", "OZON_API_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    def _create(config):
        return services.create_service_context(config, source=fake_pager, labels=fake_pager)

    monkeypatch.setattr(cli, "create_service_context", _create)


class TestStores:
    """Tests for the stores subcommand"""

    def test_import_then_list(self, db_path, tmp_path, capsys):
        source = tmp_path / "stores.txt"
        source.write_text("111 key-one\n222,key-two\n", encoding="utf-8")

        assert cli.run_cli(["--db-path", db_path, "stores", "import", str(source)]) == 0
        assert "已识别 2 个店铺" in capsys.readouterr().out

        assert cli.run_cli(["--db-path", db_path, "stores", "list"]) == 0
        assert capsys.readouterr().out.split() == ["111", "222"]

    def test_import_rejects_unrecognised_text(self, db_path, tmp_path, capsys):
        source = tmp_path / "stores.txt"
        source.write_text("just-one-token", encoding="utf-8")

        assert cli.run_cli(["--db-path", db_path, "stores", "import", str(source)]) == 1
        assert "ClientID API_Key" in capsys.readouterr().err

    def test_clear(self, db_path, tmp_path, capsys):
        source = tmp_path / "stores.txt"
        source.write_text("111 key-one", encoding="utf-8")
        cli.run_cli(["--db-path", db_path, "stores", "import", str(source)])

        assert cli.run_cli(["--db-path", db_path, "stores", "clear"]) == 0
        capsys.readouterr()
        cli.run_cli(["--db-path", db_path, "stores", "list"])
        assert capsys.readouterr().out == ""


class TestReport:
    """Tests for report, export and packing commands"""

    @pytest.fixture
    def two_stores(self, db_path, tmp_path, fake_pager, make_order):
        source = tmp_path / "stores.txt"
        source.write_text("X key-x\nY key-y\n", encoding="utf-8")
        cli.run_cli(["--db-path", db_path, "stores", "import", str(source)])
        fake_pager.pages["X"] = [
            Page(orders=(make_order(posting_number="X1"), make_order(posting_number="X2")), has_more=False)
        ]
        fake_pager.pages["Y"] = [AuthError(401, "denied")]

    def test_report_without_stores(self, db_path, capsys):
        assert cli.run_cli(["--db-path", db_path, "report"]) == 1
        assert "stores import" in capsys.readouterr().err

    def test_report_prints_totals_and_warnings(self, db_path, two_stores, tmp_path, capsys):
        target = tmp_path / "report.json"

        assert cli.run_cli(["--db-path", db_path, "report", "--output-json", str(target)]) == 0

        out = capsys.readouterr().out
        assert "已聚合 2 个店铺数据" in out
        assert "Total orders: 2" in out
        assert "! 店铺 [Y]" in out
        payload = json.loads(target.read_text(encoding="utf-8"))
        assert payload["stats"]["total_orders"] == 2
        assert len(payload["warnings"]) == 1

    def test_pack_then_export(self, db_path, two_stores, tmp_path, capsys):
        target = tmp_path / "pick.csv"

        assert cli.run_cli(["--db-path", db_path, "pack", "X1"]) == 0
        assert "已打包订单数: 1" in capsys.readouterr().out
        assert cli.run_cli(["--db-path", db_path, "export", "--output", str(target)]) == 0

        lines = target.read_text(encoding="utf-8").splitlines()
        assert lines[1].endswith(",2,1,1")

    def test_window_days_flag_reaches_fetch(self, db_path, two_stores, fake_pager):
        cli.run_cli(["--db-path", db_path, "--window-days", "3", "report"])

        window = fake_pager.windows[0]
        assert (window.to - window.since).days == 3

    def test_label_failure_exit_code(self, db_path, two_stores, fake_pager, tmp_path, capsys):
        fake_pager.labels["X"] = AuthError(403, "denied")

        code = cli.run_cli(["--db-path", db_path, "labels", "X1", "--output-dir", str(tmp_path)])

        assert code == 1
        assert "下载失败" in capsys.readouterr().err
