"""Tests for the command line entry points."""
from __future__ import annotations

import json
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

import quote_core.cli as cli
from quote_core.config import QuoteConfig, Settings, TripType
from quote_core.models import QuoteData, QuotePlan
from quote_core.workflow import QuoteResult
from sample_pages import sample_catalog


def _settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path, catalog_db_path=tmp_path / "catalog.db")


def test_quote_prints_warnings_in_the_report(tmp_path, monkeypatch, capsys) -> None:
    (tmp_path / "catalog-2025-06-01.json").write_text(json.dumps(sample_catalog().to_dict()), encoding="utf-8")
    monkeypatch.setattr(cli, "load_settings", lambda: _settings(tmp_path))
    seen = []

    def _fake_run_quote(form_data, catalog, settings):
        seen.append((form_data, catalog))
        result = QuoteResult(success=True)
        result.config = QuoteConfig(
            trip_type=TripType.DAILY,
            origin="Atlantis",
            destination="Europe",
            departure_date=date(2026, 1, 15),
            return_date=date(2026, 1, 22),
            passenger_count=1,
            ages=[30],
        )
        result.quote_data = QuoteData(
            url="https://example.com/quotation/abc",
            plans=[QuotePlan(plan_id="D-30", name="Plan Europa", price="USD 45.00")],
        )
        result.warnings = ["Origin 'Atlantis' not found in catalog, using fallback ID 160"]
        return result

    monkeypatch.setattr(cli, "run_quote", _fake_run_quote)

    code = cli.main(
        [
            "quote",
            "--origin", "Atlantis",
            "--destination", "Europe",
            "--departure", "15/01/2026",
            "--return", "22/01/2026",
            "--ages", "30",
        ]
    )

    assert code == 0
    output = capsys.readouterr().out
    assert "ADVERTENCIA: Origin 'Atlantis' not found in catalog, using fallback ID 160" in output
    assert "URL: https://example.com/quotation/abc" in output
    form_data, catalog = seen[0]
    assert form_data["ages"] == ["30"]
    assert catalog == sample_catalog()


def test_import_catalog_rejects_a_broken_file(tmp_path, monkeypatch, capsys) -> None:
    broken = tmp_path / "catalog-broken.json"
    broken.write_text(json.dumps({"tripTypes": ["Viajes Por Día"]}), encoding="utf-8")
    monkeypatch.setattr(cli, "load_settings", lambda: _settings(tmp_path))

    assert cli.main(["import-catalog", str(broken)]) == 1
    assert "Error:" in capsys.readouterr().err
