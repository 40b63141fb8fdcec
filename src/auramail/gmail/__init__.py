"""Gmail access: API client, message parsing and OAuth tokens."""

from .auth import GmailTokenProvider, load_client_config
from .client import GmailClient
from .parsing import message_to_raw_message

__all__ = ["GmailClient", "GmailTokenProvider", "load_client_config", "message_to_raw_message"]
