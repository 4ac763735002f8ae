"""Tests for the command-line interface.

WHY: The CLI is the main way users run translations. These tests check
argument handling, output naming, the never-overwrite-the-source rule,
and exit codes, with the LLM client replaced by an in-process fake.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from localekit.cli import _load_exclusions, _parse_languages, build_parser, main
from localekit.core.orchestrator import TransformError


class FakeLLMClient:
    """Stands in for LLMClient; upper-cases values, fails for Klingon."""

    instances = []

    def __init__(self, model=None, **kwargs):
        self.model = model or "fake-model"
        self.calls = []
        FakeLLMClient.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def transform(self, text, target_label, excluded):
        self.calls.append((text, target_label, excluded))
        if target_label == "tlh":
            raise TransformError("quota exceeded", status_code=429)
        return self.reply(text)

    reply = None


@pytest.fixture
def fake_client(monkeypatch, shout_reply):
    monkeypatch.setattr("localekit.config.RETRY_BACKOFF_S", 0.0)
    FakeLLMClient.instances = []
    FakeLLMClient.reply = staticmethod(shout_reply)
    with patch("localekit.cli.LLMClient", FakeLLMClient):
        yield FakeLLMClient


@pytest.fixture
def source_file(tmp_path, sample_document):
    path = tmp_path / "en_us.json"
    path.write_text(json.dumps(sample_document), encoding="utf-8")
    return path


class TestParser:

    def test_languages_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["en.json"])

    def test_exclude_is_repeatable(self):
        args = build_parser().parse_args(
            ["en.json", "--languages", "de_de", "--exclude", "a", "--exclude", "b.c"]
        )
        assert args.exclude == ["a", "b.c"]

    def test_parse_languages(self):
        assert _parse_languages(" de_de, fr_fr,,de_de ") == ["de_de", "fr_fr"]

    def test_exclude_file(self, tmp_path):
        path = tmp_path / "exclude.txt"
        path.write_text("meta\n\n# comment\n  [0]  \n", encoding="utf-8")
        assert _load_exclusions(["a"], str(path)) == ["a", "meta", "[0]"]


class TestMain:

    def test_writes_one_file_per_language(self, fake_client, source_file):
        main([str(source_file), "--languages", "de_de,fr_fr", "--exclude", "meta"])

        german = json.loads((source_file.parent / "de_de.json").read_text(encoding="utf-8"))
        assert german["title"] == "WELCOME"
        assert german["meta"] == {"id": "app-1", "version": "1.0"}
        assert (source_file.parent / "fr_fr.json").exists()

        labels = [call[1] for call in fake_client.instances[0].calls]
        assert labels == ["German", "French France"]

    def test_output_is_indented_and_keeps_unicode(self, fake_client, tmp_path):
        source = tmp_path / "en.json"
        source.write_text(json.dumps({"greeting": "grüße"}), encoding="utf-8")
        main([str(source), "--languages", "de_de"])
        text = (tmp_path / "de_de.json").read_text(encoding="utf-8")
        assert text == '{\n  "greeting": "GRÜSSE"\n}\n'

    def test_never_overwrites_source(self, fake_client, source_file, capsys):
        original = source_file.read_text(encoding="utf-8")
        main([str(source_file), "--languages", "en_us"])
        assert source_file.read_text(encoding="utf-8") == original
        assert "would overwrite the source" in capsys.readouterr().err

    def test_output_dir(self, fake_client, source_file, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        main([str(source_file), "--languages", "de_de", "--output-dir", str(out)])
        assert (out / "de_de.json").exists()
        assert not (source_file.parent / "de_de.json").exists()

    def test_failed_language_exits_1_after_others(self, fake_client, source_file, capsys):
        with pytest.raises(SystemExit) as info:
            main([str(source_file), "--languages", "tlh,de_de"])
        assert info.value.code == 1
        assert (source_file.parent / "de_de.json").exists()
        assert not (source_file.parent / "tlh.json").exists()
        err = capsys.readouterr().err
        assert "tlh: FAILED (quota)" in err

    def test_missing_file_exits_1(self, fake_client, tmp_path, capsys):
        with pytest.raises(SystemExit) as info:
            main([str(tmp_path / "nope.json"), "--languages", "de_de"])
        assert info.value.code == 1
        assert "File not found" in capsys.readouterr().err

    def test_invalid_json_exits_1(self, fake_client, tmp_path, capsys):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        with pytest.raises(SystemExit) as info:
            main([str(bad), "--languages", "de_de"])
        assert info.value.code == 1
        assert "Could not read bad.json as JSON" in capsys.readouterr().err
