"""
Adapters layer - External integrations (Supabase store, notifiers).
"""

from .memory_store import InMemoryBookingStore
from .notifier import LoggingNotifier, WebhookNotifier
from .supabase_store import SupabaseStore

__all__ = ["InMemoryBookingStore", "LoggingNotifier", "SupabaseStore", "WebhookNotifier"]
