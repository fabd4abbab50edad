"""
Settings shim.

The canonical config lives in the top-level `config/` package:
  - `config/public_config.py` (non-sensitive defaults)
  - `config/secret_config.py` (provider keys loaded from env / `.env.secrets`)
  - `config/settings.py` exposes `get_settings()` and `SETTINGS`
"""

from __future__ import annotations

from config.settings import Settings as Settings
from config.settings import get_settings as get_settings
from config.settings import secret_value as secret_value
