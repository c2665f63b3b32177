"""Tests for the command-line runner."""

import json

import pytest

from matchmaking.run import main, parse_mappings


@pytest.fixture
def cli(config_path, tmp_path, capsys):
    store_path = tmp_path / "store.json"

    def _run(*argv):
        code = main(["--config", config_path, "--store", str(store_path), *argv])
        out = capsys.readouterr().out
        return code, json.loads(out) if out.strip() else None

    return _run


@pytest.fixture
def companies_csv(tmp_path):
    path = tmp_path / "companies.csv"
    path.write_text(
        "Company Name,Country,Platforms,Description\n"
        "Acme Games,Finland,PC|Console,Narrative adventure games\n"
        "Blue Harbor,Canada,Mobile,Casual mobile puzzle games\n"
        "Pine Labs,Sweden,PC|Mobile,Puzzle and adventure games for PC\n"
    )
    return str(path)


class TestParseMappings:
    """Test Header=field parsing."""

    def test_pairs(self):
        assert parse_mappings(["Email=email", "Opt In=consent.matchmaking"]) == {
            "Email": "email",
            "Opt In": "consent.matchmaking",
        }
        assert parse_mappings(None) == {}

    def test_malformed(self):
        with pytest.raises(ValueError):
            parse_mappings(["Email"])


class TestMain:
    """Test end-to-end commands over a JSON store."""

    def test_taxonomy_on_empty_store(self, cli):
        code, result = cli("taxonomy", "--dimension", "platform")
        assert code == 0
        assert result["status"] == "not_found"

    def test_ingest_then_query(self, cli, companies_csv, tmp_path):
        code, log = cli("ingest", companies_csv)
        assert code == 0
        assert log["status"] == "completed"
        assert log["success_count"] == 3
        assert (tmp_path / "store.json").exists()

        code, result = cli("taxonomy", "--dimension", "platform", "--visualization", "heatmap")
        assert result["status"] == "ok"
        assert result["metadata"]["total_actors"] == 3

        code, response = cli("find-matches", "--actor", "acme_games", "--threshold", "0", "--no-metrics")
        assert response["status"] == "ok"
        assert len(response["matches"]) == 2
        assert response["matches"][0]["metrics"] is None

        code, batch = cli("compute-matches")
        assert batch["status"] == "completed"
        assert batch["pairs_evaluated"] == 3

    def test_config_override(self, cli, companies_csv):
        code, log = cli("--set", "ingestion.max_rows=2", "ingest", companies_csv)
        assert code == 0
        assert log["status"] == "failed"
        assert log["error_message"] == "Too many rows. Maximum allowed: 2"

    def test_attendee_ingest_and_scan(self, cli, tmp_path):
        path = tmp_path / "attendees.csv"
        path.write_text(
            "Email,Name,Badge,Opt In\n"
            "sam@example.com,Sam Okafor,B-1,yes\n"
            "kim@example.com,Kim Lee,B-2,yes\n"
        )
        code, result = cli(
            "ingest-attendees", str(path),
            "--map", "Email=email", "--map", "Name=full_name",
            "--map", "Badge=badge_id", "--map", "Opt In=consent.matchmaking",
        )
        assert code == 0
        assert result["success"] == 2
        assert result["materialized"] == 2

        code, scan = cli("scan", "B-1", "B-2")
        assert code == 0
        assert scan["from_actor_id"].startswith("a-")

    def test_profile_export_and_import(self, cli, tmp_path):
        output = tmp_path / "team.json"
        cli("compute-matches", "--profile", "team")

        code, bundle = cli("export-profile", "team", "--output", str(output))
        assert code == 0
        assert json.loads(output.read_text()) == bundle

        code, imported = cli("--user", "ops", "import-profile", str(output))
        assert code == 0
        assert imported["created_by"] == "ops"
        assert imported["id"] != "team"

    def test_failure_returns_nonzero(self, cli):
        code, result = cli("export-profile", "missing")
        assert code == 1
        assert result is None
