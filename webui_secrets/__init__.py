"""WebUI Secrets.

Encrypted secret-at-rest storage for plugin API keys and generated images.
"""
from .version import __version__
from .conf import DEFAULT_OWNER

__all__ = ["__version__", "DEFAULT_OWNER"]
