"""
Tests for the click CLI, with the completion gateway swapped out.
"""

import json

import pytest
from click.testing import CliRunner

import cli.main as cli_main
from content_trust.ingest.dedup import content_hash

FACTS = ["Water boils at 100 degrees Celsius at sea level.", "Ice melts at 0 degrees Celsius."]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def use_gateway(monkeypatch, fake_gateway):
    """Make every command use a FakeGateway with the given responses."""
    def install(responses):
        gateway = fake_gateway(responses)
        monkeypatch.setattr(cli_main, "_gateway", lambda model: gateway)
        return gateway

    return install


class TestSegmentCommand:
    def test_short_document_single_section(self, runner, tmp_path, use_gateway):
        gateway = use_gateway([])
        path = tmp_path / "note.txt"
        path.write_text("A short note about states of matter.")

        result = runner.invoke(cli_main.cli, ["segment", str(path), "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["is_composite"] is False
        assert data["sections"][0]["title"] == "note.txt"
        assert gateway.calls == []


class TestExtractCommand:
    def test_extract_json(self, runner, tmp_path, use_gateway):
        use_gateway([{"assertions": [{"assertion": FACTS[0], "category": "fact"}]}])
        path = tmp_path / "states.txt"
        path.write_text("Water boils at 100 degrees Celsius at sea level.")

        result = runner.invoke(cli_main.cli, ["extract", str(path), "--type", "TEXTBOOK", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["document_type"] == "TEXTBOOK"
        assert [a["assertion"] for a in data["assertions"]] == [FACTS[0]]

    def test_save_requires_source_id(self, runner, tmp_path, use_gateway):
        use_gateway([])
        path = tmp_path / "states.txt"
        path.write_text("text")

        result = runner.invoke(cli_main.cli, ["extract", str(path), "--save"])

        assert result.exit_code != 0
        assert "--save requires --source-id" in result.output

    def test_empty_document_exits_nonzero(self, runner, tmp_path, use_gateway):
        use_gateway([])
        path = tmp_path / "empty.txt"
        path.write_text("   ")

        result = runner.invoke(cli_main.cli, ["extract", str(path)])

        assert result.exit_code == 1
        assert "Empty document" in result.output


class TestStructureCommand:
    def _write_assertions(self, tmp_path):
        path = tmp_path / "assertions.json"
        path.write_text(json.dumps({
            "assertions": [{"assertion": t, "category": "fact"} for t in FACTS]
        }))
        return path

    def test_structure_json(self, runner, tmp_path, use_gateway):
        tree = {
            "text": "Temperature changes the state of water.",
            "children": [{"text": "Phase changes", "detailHashes": [content_hash(t) for t in FACTS]}],
        }
        gateway = use_gateway([tree])

        result = runner.invoke(
            cli_main.cli, ["structure", str(self._write_assertions(tmp_path)), "--json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["stats"]["nodes_created"] == 2
        assert data["stats"]["assertions_linked"] == 2
        assert data["report"]["orphans"] == []
        assert gateway.calls[0]["call_point"] == "structure"

    def test_structure_failure_exits_nonzero(self, runner, tmp_path, use_gateway):
        use_gateway(["this is not a tree"])

        result = runner.invoke(cli_main.cli, ["structure", str(self._write_assertions(tmp_path))])

        assert result.exit_code == 1

    def test_needs_input(self, runner, use_gateway):
        use_gateway([])
        result = runner.invoke(cli_main.cli, ["structure"])
        assert result.exit_code != 0
        assert "Provide ASSERTIONS_PATH or --from-db" in result.output


class TestCorrectCommand:
    """Tests for recording classification corrections."""

    @pytest.fixture
    def recorded(self, monkeypatch):
        import content_trust.db.repositories as repositories

        examples = []
        monkeypatch.setattr(repositories, "record_correction", examples.append)
        return examples

    def test_records_example(self, runner, tmp_path, recorded):
        path = tmp_path / "unit-2.txt"
        path.write_text("Complete the gaps. " * 200)

        result = runner.invoke(
            cli_main.cli,
            ["correct", str(path), "--type", "worksheet", "--original-type", "TEXTBOOK",
             "--domain", "esol", "--sample-size", "300"],
        )

        assert result.exit_code == 0, result.output
        assert "Recorded unit-2.txt as WORKSHEET" in result.output
        [example] = recorded
        assert example.file_name == "unit-2.txt"
        assert example.corrected_type == "WORKSHEET"
        assert example.original_type == "TEXTBOOK"
        assert example.domain_id == "esol"
        assert example.sample.startswith("[START OF DOCUMENT]")

    def test_unknown_type_rejected(self, runner, tmp_path, recorded):
        path = tmp_path / "unit-2.txt"
        path.write_text("Some text.")

        result = runner.invoke(cli_main.cli, ["correct", str(path), "--type", "NOVEL"])

        assert result.exit_code != 0
        assert "Unknown document type: NOVEL" in result.output
        assert recorded == []
