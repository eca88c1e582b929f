"""Unit tests for the command-line interface."""

import json

from typer.testing import CliRunner

from eventscout.cli import app, build_providers
from eventscout.config.settings import Settings
from eventscout.providers import CachedDiscoveryProvider

runner = CliRunner()

EVENT = {
    "id": "cse_0123456789ab",
    "title": "Legal Compliance Summit 2027",
    "description": "The annual gathering for compliance officers.",
    "source_url": "https://summit.de/2027",
    "starts_at": "2027-03-12",
    "location": "Berlin, Germany",
    "venue": None,
    "country": "DE",
    "city": "Berlin",
    "speakers": [],
    "sessions": [],
    "agenda": [],
    "confidence": 0.9,
    "confidence_reason": "high confidence extraction",
    "pipeline_metadata": {
        "source": "cse",
        "priority_score": 0.7,
        "parse_method": "deterministic",
        "evidence": 4,
        "processing_time_ms": 12.0,
        "llm_enhanced": False,
        "schema_validated": True,
        "enhancement_notes": None,
        "quality_score": 0.85,
        "publish_timestamp": "2027-01-01T00:00:00+00:00",
    },
}


class TestValidateCommand:
    """Tests for 'eventscout validate'."""

    def test_valid_result_file(self, tmp_path):
        path = tmp_path / "events.json"
        path.write_text(json.dumps({"published_events": [EVENT]}))

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 0
        assert "1 event(s) conform" in result.output

    def test_invalid_event(self, tmp_path):
        broken = {k: v for k, v in EVENT.items() if k != "title"}
        path = tmp_path / "events.json"
        path.write_text(json.dumps({"published_events": [broken]}))

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Validation failed" in result.output

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "events.json"
        path.write_text("{not json")

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1


class TestBuildProviders:
    """Tests for provider wiring from settings."""

    def test_only_configured_providers(self, tmp_path):
        seeds = tmp_path / "seeds.json"
        seeds.write_text(json.dumps([{"url": "https://summit.de/2027", "title": "Legal Summit"}]))
        settings = Settings(_env_file=None, firecrawl_api_key="fc-key", curated_seed_file=str(seeds))

        providers = build_providers(settings)

        assert [p.name for p in providers] == ["firecrawl", "curated"]
        assert all(isinstance(p, CachedDiscoveryProvider) for p in providers)

    def test_cse_needs_engine_id(self):
        settings = Settings(_env_file=None, cse_api_key="key")
        assert build_providers(settings, use_cache=False) == []
