from cardflow.core.config import Settings, get_settings
