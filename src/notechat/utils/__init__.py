"""
Utility modules.
"""

from notechat.utils.config import NoteChatConfig, load_config
from notechat.utils.logging import get_logger, set_log_level

__all__ = [
    "NoteChatConfig",
    "load_config",
    "get_logger",
    "set_log_level",
]
