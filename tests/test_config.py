import pytest

from src.config import PROJECT_ROOT, Settings


def test_defaults(monkeypatch):
    for name in (
        "WSYNTH_VOICEBANK_DIR",
        "WSYNTH_ANALYSIS_WORKERS",
        "WSYNTH_RENDER_WORKERS",
        "WSYNTH_TAIL_PADDING_MS",
        "WSYNTH_OUTPUT_SUBTYPE",
        "APP_ENV",
        "ENV",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings.voicebank_dir == (PROJECT_ROOT / "assets/voicebanks").resolve()
    assert settings.analysis_workers == 0
    assert settings.render_workers == 1
    assert settings.tail_padding_ms == 2000.0
    assert settings.output_subtype == "PCM_16"
    assert settings.app_env == "dev"


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("WSYNTH_VOICEBANK_DIR", str(tmp_path))
    monkeypatch.setenv("WSYNTH_RENDER_WORKERS", "4")
    monkeypatch.setenv("WSYNTH_TAIL_PADDING_MS", "500")
    monkeypatch.setenv("WSYNTH_OUTPUT_SUBTYPE", "float")
    monkeypatch.setenv("APP_ENV", "prod")
    settings = Settings.from_env()
    assert settings.voicebank_dir == tmp_path
    assert settings.render_workers == 4
    assert settings.tail_padding_ms == 500.0
    assert settings.output_subtype == "FLOAT"
    assert settings.app_env == "prod"


@pytest.mark.parametrize(
    "name,value",
    [
        ("WSYNTH_ANALYSIS_WORKERS", "-1"),
        ("WSYNTH_RENDER_WORKERS", "0"),
        ("WSYNTH_TAIL_PADDING_MS", "-10"),
    ],
)
def test_invalid_values_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        Settings.from_env()
