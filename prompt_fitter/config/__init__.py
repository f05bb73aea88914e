from .settings import PromptFitConfig, get_default_config

__all__ = ["PromptFitConfig", "get_default_config"]
