"""Tests for config module"""
import json
import pytest


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Isolate config module from real filesystem and env"""
    monkeypatch.setattr('config.CONFIG_FILE', str(tmp_path / 'config.json'))

    # Clear relevant env vars
    for key in ('BITLY_ACCESS_TOKEN', 'BITLY_API_URL', 'TELEX_API_URL', 'HOST', 'PORT',
                'EXTRACT_MODE', 'SHORTEN_TIMEOUT', 'MAX_CONCURRENT_SHORTENS', 'RELAY_ENABLED',
                'RELAY_TIMEOUT', 'REQUIRE_CHANNEL_ID', 'INTEGRATION_FILE'):
        monkeypatch.delenv(key, raising=False)

    yield tmp_path


def test_load_config_defaults():
    """load_config returns defaults when no env or file config"""
    import config
    cfg = config.load_config()
    assert cfg['BITLY_ACCESS_TOKEN'] == ''
    assert cfg['BITLY_API_URL'] == 'https://api-ssl.bitly.com/v4/shorten'
    assert cfg['TELEX_API_URL'] == 'https://api.telex.im'
    assert cfg['PORT'] == 4000
    assert cfg['EXTRACT_MODE'] == 'pattern'
    assert cfg['SHORTEN_TIMEOUT'] == 10.0
    assert cfg['MAX_CONCURRENT_SHORTENS'] == 10
    assert cfg['RELAY_ENABLED'] is True
    assert cfg['REQUIRE_CHANNEL_ID'] is True
    assert cfg['INTEGRATION_FILE'].endswith('integration.json')


def test_load_config_from_env(monkeypatch):
    """load_config reads from environment variables"""
    import config
    monkeypatch.setenv('BITLY_ACCESS_TOKEN', 'tok')
    monkeypatch.setenv('PORT', '8080')
    monkeypatch.setenv('EXTRACT_MODE', 'Markup')
    monkeypatch.setenv('SHORTEN_TIMEOUT', '2.5')
    monkeypatch.setenv('MAX_CONCURRENT_SHORTENS', '0')
    monkeypatch.setenv('RELAY_ENABLED', 'false')
    monkeypatch.setenv('REQUIRE_CHANNEL_ID', '0')
    cfg = config.load_config()
    assert cfg['BITLY_ACCESS_TOKEN'] == 'tok'
    assert cfg['PORT'] == 8080
    assert cfg['EXTRACT_MODE'] == 'markup'
    assert cfg['SHORTEN_TIMEOUT'] == 2.5
    assert cfg['MAX_CONCURRENT_SHORTENS'] == 0
    assert cfg['RELAY_ENABLED'] is False
    assert cfg['REQUIRE_CHANNEL_ID'] is False


def test_invalid_env_values_fall_back(monkeypatch):
    """Unparseable numbers and unknown modes use defaults"""
    import config
    monkeypatch.setenv('PORT', 'eighty')
    monkeypatch.setenv('EXTRACT_MODE', 'telepathy')
    monkeypatch.setenv('SHORTEN_TIMEOUT', '-3')
    monkeypatch.setenv('MAX_CONCURRENT_SHORTENS', '-1')
    cfg = config.load_config()
    assert cfg['PORT'] == 4000
    assert cfg['EXTRACT_MODE'] == 'pattern'
    assert cfg['SHORTEN_TIMEOUT'] == 10.0
    assert cfg['MAX_CONCURRENT_SHORTENS'] == 0


def test_load_config_file_overrides_env(monkeypatch):
    """File config overrides environment variables"""
    import config
    monkeypatch.setenv('BITLY_ACCESS_TOKEN', 'from_env')
    monkeypatch.setenv('PORT', '5000')

    with open(config.CONFIG_FILE, 'w') as f:
        json.dump({'BITLY_ACCESS_TOKEN': 'from_file', 'EXTRACT_MODE': 'bogus'}, f)

    cfg = config.load_config()
    assert cfg['PORT'] == 5000
    assert cfg['BITLY_ACCESS_TOKEN'] == 'from_file'
    assert cfg['EXTRACT_MODE'] == 'pattern'


def test_file_values_are_coerced():
    """String numbers and booleans in the config file get the env types"""
    import config
    with open(config.CONFIG_FILE, 'w') as f:
        json.dump({'MAX_CONCURRENT_SHORTENS': '5', 'SHORTEN_TIMEOUT': '10', 'PORT': '8081',
                   'RELAY_ENABLED': 'false', 'REQUIRE_CHANNEL_ID': 0, 'RELAY_TIMEOUT': 'soon',
                   'BITLY_ACCESS_TOKEN': None}, f)
    cfg = config.load_config()
    assert cfg['MAX_CONCURRENT_SHORTENS'] == 5
    assert cfg['SHORTEN_TIMEOUT'] == 10.0
    assert cfg['PORT'] == 8081
    assert cfg['RELAY_ENABLED'] is False
    assert cfg['REQUIRE_CHANNEL_ID'] is False
    assert cfg['RELAY_TIMEOUT'] == 10.0
    assert cfg['BITLY_ACCESS_TOKEN'] == ''


def test_load_config_invalid_json():
    """Invalid JSON in config file is ignored"""
    import config
    with open(config.CONFIG_FILE, 'w') as f:
        f.write('{not valid json')
    cfg = config.load_config()
    assert cfg['PORT'] == 4000


def test_load_config_non_object_json():
    """A config file that is not an object is ignored"""
    import config
    with open(config.CONFIG_FILE, 'w') as f:
        json.dump(['BITLY_ACCESS_TOKEN'], f)
    cfg = config.load_config()
    assert cfg['BITLY_ACCESS_TOKEN'] == ''


def test_is_configured(monkeypatch):
    """is_configured requires a provider token"""
    import config
    assert config.is_configured() is False
    monkeypatch.setenv('BITLY_ACCESS_TOKEN', 'tok')
    assert config.is_configured() is True
    assert config.is_configured({'BITLY_ACCESS_TOKEN': ''}) is False


class TestSafeHelpers:
    def test_safe_int(self):
        """_safe_int converts or falls back"""
        import config
        assert config._safe_int('12', 0) == 12
        assert config._safe_int(None, 7) == 7
        assert config._safe_int('x', 7) == 7

    def test_safe_float(self):
        """_safe_float rejects non-positive values"""
        import config
        assert config._safe_float('0.5', 1.0) == 0.5
        assert config._safe_float('0', 1.0) == 1.0
        assert config._safe_float(None, 1.0) == 1.0

    def test_safe_bool(self):
        """_safe_bool accepts common truthy spellings"""
        import config
        assert config._safe_bool('yes', False) is True
        assert config._safe_bool('False', True) is False
        assert config._safe_bool(1, False) is True
        assert config._safe_bool(None, True) is True
