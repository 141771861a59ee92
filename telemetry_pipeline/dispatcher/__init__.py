from .notifications import WebhookNotifier
from .service import DispatchResult, Dispatcher

__all__ = ["DispatchResult", "Dispatcher", "WebhookNotifier"]
