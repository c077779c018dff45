"""Services package for querybuilder-mcp.

Main Components:
- ConfigService: environment-driven configuration
- WizardSessionManager: in-memory registry of wizard sessions per connection
"""

from .config_service import ConfigService
from .session_manager import WizardSessionManager

__all__ = [
    "ConfigService",
    "WizardSessionManager",
]
