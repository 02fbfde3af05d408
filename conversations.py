"""
In-memory conversation list driven by chat update events

Updates are plain dicts tagged by ``type``:

    {'type': 'new_message', 'data': {...}}
    {'type': 'mark_as_read', 'conversation_id': '...'}
    {'type': 'refresh', 'shop_id': 123}      # shop_id optional
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

NEW_MESSAGE = 'new_message'
MARK_AS_READ = 'mark_as_read'
REFRESH = 'refresh'
UPDATE_TYPES = (NEW_MESSAGE, MARK_AS_READ, REFRESH)

# Shopee's "never hidden" sentinel for general options
NO_HIDE_TIME = '9223372036854775'

def _latest_message_fields(message: Dict[str, Any]) -> Dict[str, Any]:
    shop_name = (message.get('receiver_name') if message.get('shop_id') == message.get('receiver')
                 else message.get('sender_name'))
    return {
        'shop_name': shop_name,
        'latest_message_content': {'text': (message.get('content') or {}).get('text')},
        'latest_message_id': message.get('message_id'),
        'last_read_message_id': message.get('message_id'),
        'latest_message_from_id': message.get('sender'),
        'latest_message_type': message.get('message_type') or 'text',
        # conversation timestamps are nanoseconds, message timestamps seconds
        'last_message_timestamp': int(message.get('timestamp') or 0) * 1000000,
    }

def new_conversation(message: Dict[str, Any]) -> Dict[str, Any]:
    """Conversation record for a message from a thread not seen before"""
    from_shop = message.get('sender') == message.get('shop_id')
    conversation = {
        'conversation_id': message['conversation_id'],
        'to_id': message.get('receiver') if from_shop else message.get('sender'),
        'to_name': message.get('receiver_name') if from_shop else message.get('sender_name'),
        'to_avatar': '',
        'shop_id': message.get('shop_id'),
        'unread_count': 1,
        'pinned': False,
        'last_message_option': 0,
        'max_general_option_hide_time': NO_HIDE_TIME,
        'mute': False,
    }
    conversation.update(_latest_message_fields(message))
    return conversation

def apply_update(conversations: List[Dict[str, Any]], update: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return the conversation list after one update.

    The input list is left untouched. ``refresh`` drops the affected
    conversations; reloading them is up to the caller.
    """
    update_type = update.get('type')

    if update_type == NEW_MESSAGE:
        message = update['data']
        conversation_id = message['conversation_id']
        remaining = []
        existing = None
        for conversation in conversations:
            if existing is None and conversation['conversation_id'] == conversation_id:
                existing = conversation
            else:
                remaining.append(conversation)

        if existing is None:
            return [new_conversation(message)] + remaining

        updated = dict(existing)
        updated.update(_latest_message_fields(message))
        updated['unread_count'] = existing.get('unread_count', 0) + 1
        return [updated] + remaining

    if update_type == MARK_AS_READ:
        conversation_id = update.get('conversation_id')
        if not any(c['conversation_id'] == conversation_id for c in conversations):
            return list(conversations)
        return [
            dict(c, unread_count=0) if c['conversation_id'] == conversation_id else c
            for c in conversations
        ]

    if update_type == REFRESH:
        shop_id = update.get('shop_id')
        if shop_id is None:
            return []
        return [c for c in conversations if c.get('shop_id') != shop_id]

    raise ValueError(f"Unknown conversation update type: {update_type!r}")

class ConversationIndex:
    """Ordered conversation list with a single writer.

    ``loader(shop_id)`` is called on ``refresh`` and must return the fresh
    conversations for that shop (or all shops when ``shop_id`` is None).
    """

    def __init__(self, conversations: List[Dict[str, Any]] = None,
                 loader: Optional[Callable[[Optional[int]], List[Dict[str, Any]]]] = None):
        self._conversations = list(conversations or [])
        self._loader = loader
        self._lock = threading.Lock()

    @property
    def conversations(self) -> List[Dict[str, Any]]:
        return list(self._conversations)

    def get(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        for conversation in self._conversations:
            if conversation['conversation_id'] == conversation_id:
                return conversation
        return None

    def replace(self, conversations: List[Dict[str, Any]]):
        with self._lock:
            self._conversations = list(conversations)

    def apply(self, update: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            self._conversations = apply_update(self._conversations, update)

            if update.get('type') == REFRESH and self._loader:
                shop_id = update.get('shop_id')
                try:
                    fresh = self._loader(shop_id)
                except Exception as e:
                    logger.error(f"Failed to reload conversations for shop {shop_id}: {e}")
                    raise
                self._conversations = sorted(
                    self._conversations + list(fresh),
                    key=lambda c: c.get('last_message_timestamp') or 0,
                    reverse=True
                )

            return list(self._conversations)
