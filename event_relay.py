"""
Relay of Shopee chat push events to connected dashboard sessions (SSE)
"""

import hmac
import hashlib
import json
import queue
import threading
import time
import logging
import uuid
from typing import Any, Dict, Iterable, Iterator, Optional

from conversations import ConversationIndex, NEW_MESSAGE, MARK_AS_READ, REFRESH

logger = logging.getLogger(__name__)

# Shopee push code for webchat events
WEBCHAT_PUSH_CODE = 10
READ_PUSH_TYPES = ('conversation_read', 'mark_as_read')

def verify_push_signature(url: str, body: bytes, authorization: str, partner_key: str) -> bool:
    """Check the Authorization header Shopee sends with every push"""
    expected = hmac.new(
        partner_key.encode('utf-8'),
        url.encode('utf-8') + b'|' + body,
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, authorization or '')

def normalize_chat_message(shop_id: int, content: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a webchat push message into the frame sent to sessions"""
    return {
        'conversation_id': str(content['conversation_id']),
        'message_id': str(content.get('message_id')),
        'sender': content.get('from_id'),
        'sender_name': content.get('from_user_name'),
        'receiver': content.get('to_id'),
        'receiver_name': content.get('to_user_name'),
        'shop_id': shop_id,
        'timestamp': content.get('created_timestamp') or int(time.time()),
        'message_type': content.get('message_type') or 'text',
        'content': content.get('content') or {},
    }

def classify_push(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Turn a Shopee push into a conversation update, or None if not chat"""
    if payload.get('code') != WEBCHAT_PUSH_CODE:
        return None

    shop_id = payload.get('shop_id')
    data = payload.get('data') or {}
    push_type = data.get('type')
    content = data.get('content') or {}

    if push_type == 'message' and content.get('conversation_id'):
        return {
            'type': NEW_MESSAGE,
            'shop_id': shop_id,
            'data': normalize_chat_message(shop_id, content),
        }

    if push_type in READ_PUSH_TYPES and content.get('conversation_id'):
        return {
            'type': MARK_AS_READ,
            'shop_id': shop_id,
            'conversation_id': str(content['conversation_id']),
        }

    return {'type': REFRESH, 'shop_id': shop_id}

def frame_for(update: Dict[str, Any]) -> Dict[str, Any]:
    if update['type'] == NEW_MESSAGE:
        return dict(update['data'], type=NEW_MESSAGE)
    if update['type'] == MARK_AS_READ:
        return {'type': MARK_AS_READ, 'conversation_id': update['conversation_id'],
                'shop_id': update.get('shop_id')}
    return {'type': REFRESH, 'shop_id': update.get('shop_id')}

def format_sse(data: Dict[str, Any]) -> str:
    return f"data: {json.dumps(data)}\n\n"

class RelaySession:
    """One connected browser session and its pending frames"""

    def __init__(self, connection_id: str, shop_ids: Iterable[int] = None, queue_size: int = 100):
        self.connection_id = connection_id
        self.shop_ids = {int(s) for s in shop_ids} if shop_ids else None
        self.queue = queue.Queue(maxsize=queue_size)
        self.closed = False

    def wants(self, shop_id: Optional[int]) -> bool:
        return self.shop_ids is None or shop_id is None or int(shop_id) in self.shop_ids

    def __repr__(self):
        return f'<RelaySession {self.connection_id}>'

class EventRelay:
    """Fan-out of chat updates to sessions, one queue per connection.

    Delivery is at-most-once: nothing is buffered for a session that is not
    connected, and frames are dropped when a session queue is full.
    """

    def __init__(self, heartbeat_interval: float = 30, queue_size: int = 100):
        self.heartbeat_interval = heartbeat_interval
        self.queue_size = queue_size
        self.conversations = ConversationIndex()
        self._sessions: Dict[str, RelaySession] = {}
        self._lock = threading.Lock()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def connect(self, connection_id: str = None, shop_ids: Iterable[int] = None) -> RelaySession:
        """Register a session; a known connection id replaces its old session"""
        session = RelaySession(connection_id or uuid.uuid4().hex, shop_ids, self.queue_size)

        with self._lock:
            previous = self._sessions.get(session.connection_id)
            if previous:
                previous.closed = True
            self._sessions[session.connection_id] = session

        logger.info(f"Relay session {session.connection_id} connected. "
                    f"Total sessions: {len(self._sessions)}")
        return session

    def disconnect(self, session: RelaySession):
        session.closed = True
        with self._lock:
            if self._sessions.get(session.connection_id) is session:
                del self._sessions[session.connection_id]
        logger.info(f"Relay session {session.connection_id} disconnected. "
                    f"Total sessions: {len(self._sessions)}")

    def publish(self, update: Dict[str, Any]) -> int:
        """Queue an update for every session subscribed to its shop"""
        frame = frame_for(update)
        shop_id = update.get('shop_id')

        with self._lock:
            targets = [s for s in self._sessions.values() if s.wants(shop_id)]

        delivered = 0
        for session in targets:
            try:
                session.queue.put_nowait(frame)
                delivered += 1
            except queue.Full:
                logger.warning(f"Relay session {session.connection_id} is full; "
                               f"dropping {frame['type']} event")
        return delivered

    def handle_push(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Classify a Shopee push, update the index and forward it"""
        update = classify_push(payload)
        if update is None:
            logger.info(f"Ignoring push code {payload.get('code')} for shop {payload.get('shop_id')}")
            return None

        self.conversations.apply(update)
        delivered = self.publish(update)
        logger.info(f"Relayed {update['type']} for shop {update.get('shop_id')} to {delivered} sessions")
        return update

    def stream(self, session: RelaySession) -> Iterator[str]:
        """SSE frames for one session until it is closed or replaced"""
        try:
            yield format_sse({'type': 'connection_established', 'connectionId': session.connection_id})

            while not session.closed:
                try:
                    frame = session.queue.get(timeout=self.heartbeat_interval)
                except queue.Empty:
                    yield format_sse({'type': 'heartbeat', 'timestamp': int(time.time())})
                    continue
                yield format_sse(frame)
        finally:
            self.disconnect(session)
