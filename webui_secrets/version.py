"""WebUI Secrets Meta information.
   WebUI Secrets keeps plugin credentials and generated images encrypted at rest.
"""
__title__ = 'webui_secrets'
__description__ = (
   'WebUI Secrets keeps plugin credentials and generated images '
   'encrypted at rest under a single master key.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2025 Kroonen AI, Inc.'
__author__ = 'Kroonen AI'
__author_email__ = 'info@kroonen.ai'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/libre-webui/libre-webui'
