import pytest

from bilifetch.exceptions import ConfigurationError
from bilifetch.models.config import FetchConfig
from bilifetch.storage.config_manager import ConfigManager


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "bilifetch" / "config.ini"


def test_missing_file_yields_defaults(config_file):
    config = ConfigManager(config_file).load_config()
    assert config.quality == 0
    assert config.pool_size == 2
    assert config.output_dir == "./downloads"
    assert config.config_path == str(config_file.parent)
    assert not config_file.exists()


def test_saved_settings_round_trip(config_file):
    manager = ConfigManager(config_file)
    manager.save_new_config({"quality": 80, "cookie_dir": "/srv/cookies", "headless": False})

    text = config_file.read_text(encoding="utf-8")
    assert "[DEFAULT]" in text
    assert "headless = false" in text

    config = ConfigManager(config_file).load_config()
    assert config.quality == 80
    assert config.cookie_dir == "/srv/cookies"
    assert config.headless is False
    assert config.video_timeout == 1800.0


def test_cli_options_override_file(config_file):
    ConfigManager(config_file).save_new_config({"quality": 80})
    config = ConfigManager(config_file).load_config({"quality": 32, "output_dir": "/tmp/x"})
    assert config.quality == 32
    assert config.output_dir == "/tmp/x"


def test_missing_keys_are_migrated(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[DEFAULT]\nquality = 64\n", encoding="utf-8")

    config = ConfigManager(config_file).load_config()

    assert config.quality == 64
    text = config_file.read_text(encoding="utf-8")
    for key in FetchConfig.get_ini_keys():
        assert f"{key} = " in text
    assert "config_path" not in text


@pytest.mark.parametrize(
    "body",
    [
        "[DEFAULT]\nquality = -1\n",
        "[DEFAULT]\npool_size = 0\n",
        "[DEFAULT]\nquality = high\n",
        "[DEFAULT]\nvideo_timeout = -1\n",
        "not an ini file",
    ],
)
def test_invalid_files_raise_configuration_error(config_file, body):
    config_file.parent.mkdir(parents=True)
    config_file.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigManager(config_file).load_config()


def test_display_dict_hides_internal_fields(config_file):
    shown = ConfigManager(config_file).as_display_dict()
    assert "config_path" not in shown
    assert shown["pool_size"] == 2


def test_codes_outside_the_label_table_are_accepted(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[DEFAULT]\nquality = 90\n", encoding="utf-8")
    assert ConfigManager(config_file).load_config().quality == 90
    assert ConfigManager(config_file).load_config({"quality": 6}).quality == 6
