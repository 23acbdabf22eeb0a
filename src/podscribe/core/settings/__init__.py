from .settings import (
    APP_NAME,
    BackendMode,
    Settings,
    get_config_dir,
    get_data_dir,
    get_settings,
)

__all__ = [
    "APP_NAME",
    "BackendMode",
    "Settings",
    "get_config_dir",
    "get_data_dir",
    "get_settings",
]
