from pathlib import Path

import pytest

from hospital.config import AppConfig


class TestAppConfig:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("HOSPITAL_DATA_DIR", raising=False)
        monkeypatch.delenv("HOSPITAL_LOG_LEVEL", raising=False)

        config = AppConfig()

        assert config.data_dir == Path("./data")
        assert config.log_level == "INFO"

    def test_reads_prefixed_environment(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOSPITAL_DATA_DIR", "/srv/hospital")
        monkeypatch.setenv("HOSPITAL_LOG_LEVEL", "debug")

        config = AppConfig()

        assert config.data_dir == Path("/srv/hospital")
        assert config.log_level == "debug"

    def test_reads_dotenv_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("HOSPITAL_DATA_DIR", raising=False)
        (tmp_path / ".env").write_text("HOSPITAL_DATA_DIR=records\nUNRELATED=1\n")

        assert AppConfig().data_dir == Path("records")
