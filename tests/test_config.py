"""Tests for configuration loading and validation."""
import pytest

from petflix.core.config import Config, GenerationConfig, RenderConfig
from petflix.core.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("VIDU_API_KEY", "MINIMAX_API_KEY", "MINIMAX_GROUP_ID", "SHOTSTACK_API_KEY"):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_defaults(self):
        config = Config()
        assert config.generation.provider == "vidu"
        assert config.generation.duration == 4
        assert config.generation.inter_clip_delay == 15.0
        assert config.generation.partial_policy == "abort"
        assert config.budget.cap_usd == 50.0
        assert config.budget.unit_price_usd == 0.43
        assert config.render.resolution == "hd"
        assert config.render.max_poll_attempts == 40

    def test_paths_expanded(self):
        config = Config()
        assert "~" not in str(config.cache_dir)
        assert "~" not in str(config.budget_dir)


class TestValidation:
    @pytest.mark.parametrize(
        "values",
        [
            {"provider": "sora"},
            {"resolution": "4k"},
            {"duration": 0},
            {"poll_interval": 2},
            {"poll_interval": 30},
            {"inter_clip_delay": -1},
            {"partial_policy": "retry_forever"},
        ],
    )
    def test_invalid_generation_values(self, values):
        with pytest.raises(ConfigurationError):
            GenerationConfig(**values)

    def test_invalid_render_resolution(self):
        with pytest.raises(ConfigurationError):
            RenderConfig(resolution="720p")

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            Config.from_dict({"generation": {"colour": "red"}})


class TestLoading:
    def test_from_dict(self):
        config = Config.from_dict({
            "generation": {"provider": "minimax", "group_id": "g1"},
            "budget": {"cap_usd": 10},
        })
        assert config.generation.provider == "minimax"
        assert config.generation.group_id == "g1"
        assert config.budget.cap_usd == 10

    def test_env_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PETFLIX_LOG_LEVEL", "DEBUG")
        path = tmp_path / "config.yaml"
        path.write_text(
            "generation:\n"
            "  api_key: ${VIDU_API_KEY}\n"
            "  subject_description: ${PETFLIX_SUBJECT:-corgi}\n"
            "logging:\n"
            "  level: ${PETFLIX_LOG_LEVEL:-INFO}\n"
        )
        config = Config.load(path)
        assert config.generation.api_key is None
        assert config.generation.subject_description == "corgi"
        assert config.logging.level == "DEBUG"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            Config.load(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("generation: [unclosed\n")
        with pytest.raises(ConfigurationError):
            Config.load(path)

    def test_custom_themes_kept(self):
        config = Config.from_dict({"themes": {"beach": {"scenes": ["a"] * 5}}})
        assert "beach" in config.get_themes()


class TestCredentials:
    def test_vidu_key_from_env(self, monkeypatch):
        monkeypatch.setenv("VIDU_API_KEY", "vda_env")
        monkeypatch.setenv("SHOTSTACK_API_KEY", "ss_env")
        config = Config()
        assert config.generation.api_key == "vda_env"
        assert config.render.api_key == "ss_env"

    def test_minimax_credentials_from_env(self, monkeypatch):
        monkeypatch.setenv("MINIMAX_API_KEY", "mm_env")
        monkeypatch.setenv("MINIMAX_GROUP_ID", "group_env")
        config = Config.from_dict({"generation": {"provider": "minimax"}})
        assert config.generation.api_key == "mm_env"
        assert config.generation.group_id == "group_env"

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("VIDU_API_KEY", "vda_env")
        config = Config.from_dict({"generation": {"api_key": "vda_file"}})
        assert config.generation.api_key == "vda_file"

    def test_to_dict_round_trip_sections(self):
        data = Config().to_dict()
        assert set(data) >= {"generation", "render", "retry", "budget", "cache"}
