import os

from streamrelay.utils.logger import ensure_log_path


def test_ensure_log_path_keeps_existing(monkeypatch, tmp_path):
    monkeypatch.setenv("STREAMRELAY_LOG_PATH", str(tmp_path / "given.log"))
    assert ensure_log_path(tmp_path / "other") == tmp_path / "given.log"


def test_ensure_log_path_creates_unique_file(monkeypatch, tmp_path):
    monkeypatch.delenv("STREAMRELAY_LOG_PATH", raising=False)
    path = ensure_log_path(tmp_path / "logs")

    assert path.parent == tmp_path / "logs"
    assert path.parent.is_dir()
    assert path.name.startswith("streamrelay-") and path.suffix == ".log"
    assert os.environ["STREAMRELAY_LOG_PATH"] == str(path)
