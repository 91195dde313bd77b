"""
Settings module initialization.

``DJANGO_ENV`` picks the module: prod, test, or dev (default).
When DJANGO_SETTINGS_MODULE names one of the submodules directly
(pytest uses config.settings.test), nothing is loaded here, so the dev
extras are not needed to run the tests.
"""

import os

env = os.environ.get('DJANGO_ENV', 'dev')
selected = os.environ.get('DJANGO_SETTINGS_MODULE', 'config.settings')

if selected.startswith(f'{__name__}.'):
    pass
elif env == 'prod':
    from .prod import *
elif env == 'test':
    from .test import *
else:
    from .dev import *
