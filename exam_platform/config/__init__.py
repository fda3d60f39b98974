from .settings import settings, Settings, get_bool_env, get_int_env

__all__ = ["settings", "Settings", "get_bool_env", "get_int_env"]
