import sys

from django.conf import settings

import config.settings


def test_named_settings_module_skips_the_environment_switch():
    assert settings.SETTINGS_MODULE == 'config.settings.test'
    assert not hasattr(config.settings, 'INSTALLED_APPS')
    assert 'config.settings.dev' not in sys.modules
    assert 'debug_toolbar' not in settings.INSTALLED_APPS
