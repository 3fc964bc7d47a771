"""Main settings entry point.

Settings are split into components and assembled with
``django-split-settings``. Values come from the environment
or ``config/.env`` via ``python-decouple``.
"""

from split_settings.tools import include, optional

_base_settings = (
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/elfinder.py',
    # Local overrides, never committed
    optional('components/local.py'),
)

include(*_base_settings)
