"""Book configuration loading and markdown chapter preprocessors."""

__version__ = "0.1.0"

__all__ = ["config", "config_types", "preprocess", "index", "cmd", "linkparse", "links"]