"""CLI smoke tests."""

import json

import pytest
from typer.testing import CliRunner

from scribeguard import cli
from scribeguard.crypto.keys import KeyMaterial
from scribeguard.phi import dependencies

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(clean_settings, monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli, "load_dotenv", lambda **kwargs: False)
    clean_settings.setenv("PHI_DETECTOR_BACKEND", "regex")
    dependencies.get_detector.cache_clear()
    dependencies.get_masker.cache_clear()
    yield
    dependencies.get_detector.cache_clear()
    dependencies.get_masker.cache_clear()


def test_keygen_writes_loadable_pair(tmp_path):
    result = runner.invoke(cli.app, ["keygen", "--out-dir", str(tmp_path), "--key-id", "k1"])

    assert result.exit_code == 0
    keys = KeyMaterial.from_pem(
        (tmp_path / "public.pem").read_text(), (tmp_path / "private.pem").read_text()
    )
    assert keys.private_key is not None


def test_keygen_refuses_to_overwrite(tmp_path):
    (tmp_path / "private.pem").write_text("existing")

    result = runner.invoke(cli.app, ["keygen", "--out-dir", str(tmp_path)])

    assert result.exit_code == 1
    assert (tmp_path / "private.pem").read_text() == "existing"


def test_mask_then_unmask(tmp_path):
    text = "Patient: Jane Roe\nMRN: 1234567\nFollow up 2024-03-01."

    masked = runner.invoke(cli.app, ["mask", text])

    assert masked.exit_code == 0
    payload = json.loads(masked.stdout)
    assert "Jane Roe" not in payload["masked_text"]
    assert "1234567" not in payload["masked_text"]

    (tmp_path / "masked.txt").write_text(payload["masked_text"])
    (tmp_path / "ledger.json").write_text(json.dumps(payload))
    restored = runner.invoke(cli.app, ["unmask", str(tmp_path / "masked.txt"), str(tmp_path / "ledger.json")])

    assert restored.exit_code == 0
    assert restored.stdout.rstrip("\n") == text


def test_mask_reads_file(tmp_path):
    source = tmp_path / "note.txt"
    source.write_text("Contact jane@example.org")

    result = runner.invoke(cli.app, ["mask", "--file", str(source)])

    assert json.loads(result.stdout)["masked_text"] == "Contact {{EMAIL_1}}"


def test_mask_requires_input():
    result = runner.invoke(cli.app, ["mask"])

    assert result.exit_code != 0


def test_secret_key():
    result = runner.invoke(cli.app, ["secret-key"])

    assert result.exit_code == 0
    assert len(bytes.fromhex(result.stdout.strip())) == 32
