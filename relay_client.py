"""
Dashboard-side consumer of the chat event stream and message threads
"""

import json
import time
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

import requests

from conversations import ConversationIndex, NEW_MESSAGE, MARK_AS_READ, REFRESH

logger = logging.getLogger(__name__)

class RelayDisconnected(Exception):
    """Raised when the event stream cannot be re-established"""

def parse_sse(lines: Iterable[Any]) -> Iterator[Dict[str, Any]]:
    """Decode ``data:`` frames from an event-stream line iterator"""
    data_lines = []
    for line in lines:
        if isinstance(line, bytes):
            line = line.decode('utf-8')

        if line:
            if line.startswith('data:'):
                data_lines.append(line[5:].lstrip())
            continue

        if not data_lines:
            continue
        raw = '\n'.join(data_lines)
        data_lines = []
        try:
            yield json.loads(raw)
        except ValueError as e:
            logger.error(f"Error parsing SSE message: {e}")

def _message_time(timestamp: Optional[int]) -> str:
    moment = datetime.fromtimestamp(timestamp) if timestamp else datetime.now()
    return moment.strftime('%H:%M')

def format_message(message: Dict[str, Any], shop_id: int) -> Dict[str, Any]:
    """Shape a get_message record for display"""
    message_type = message.get('message_type')
    content = message.get('content') or {}
    formatted = {
        'id': message.get('message_id'),
        'sender': 'seller' if message.get('from_shop_id') == shop_id else 'buyer',
        'type': message_type,
        'content': content.get('text', '') if message_type == 'text' else '',
        'time': _message_time(message.get('created_timestamp')),
    }
    if message_type == 'image':
        formatted['image_url'] = content.get('url')
        formatted['image_thumb'] = {
            'url': content.get('thumb_url') or content.get('url'),
            'height': content.get('thumb_height'),
            'width': content.get('thumb_width'),
        }
    return formatted

class ConversationFeed:
    """Conversation list kept current from ``GET /api/webhook``.

    Transport failures are retried with exponential backoff
    (``backoff_base * 2**n`` seconds) up to ``max_retries`` times in a row;
    the connection id is sent back on reconnect. Events published while
    disconnected are lost.
    """

    def __init__(self, base_url: str, shop_ids: List[int] = None, max_retries: int = 5,
                 backoff_base: float = 1.0, timeout: float = 60,
                 sleep: Callable[[float], None] = time.sleep):
        self.base_url = base_url.rstrip('/')
        self.shop_ids = shop_ids
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.timeout = timeout
        self.sleep = sleep
        self.connection_id = None
        self.index = ConversationIndex(loader=self._reload)
        self.listeners: List[Callable[[Dict[str, Any]], None]] = []

    @property
    def conversations(self) -> List[Dict[str, Any]]:
        return self.index.conversations

    def fetch_conversations(self) -> List[Dict[str, Any]]:
        response = requests.get(
            f"{self.base_url}/api/msg/get_conversation_list",
            params={'_': int(time.time() * 1000)},
            timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    def load(self) -> List[Dict[str, Any]]:
        self.index.replace(self.fetch_conversations())
        return self.index.conversations

    def _reload(self, shop_id: Optional[int]) -> List[Dict[str, Any]]:
        conversations = self.fetch_conversations()
        if shop_id is None:
            return conversations
        return [c for c in conversations if c.get('shop_id') == shop_id]

    def handle_frame(self, frame: Dict[str, Any]):
        frame_type = frame.get('type')

        if frame_type == 'connection_established':
            self.connection_id = frame.get('connectionId')
        elif frame_type == NEW_MESSAGE:
            self.index.apply({'type': NEW_MESSAGE, 'data': frame})
        elif frame_type == MARK_AS_READ:
            self.index.apply({'type': MARK_AS_READ, 'conversation_id': frame.get('conversation_id')})
        elif frame_type == REFRESH:
            self.index.apply({'type': REFRESH, 'shop_id': frame.get('shop_id')})
        elif frame_type == 'heartbeat':
            logger.debug(f"Heartbeat received: {frame.get('timestamp')}")

        for listener in self.listeners:
            listener(frame)

    def _stream_params(self) -> Dict[str, Any]:
        params = {}
        if self.connection_id:
            params['connectionId'] = self.connection_id
        if self.shop_ids:
            params['shopId'] = list(self.shop_ids)
        return params

    def listen(self, max_frames: int = None) -> int:
        """Consume frames until ``max_frames`` have been handled.

        Raises RelayDisconnected once the retry budget is spent.
        """
        retries = 0
        received = 0

        while True:
            try:
                response = requests.get(
                    f"{self.base_url}/api/webhook",
                    params=self._stream_params(),
                    stream=True,
                    timeout=self.timeout
                )
                try:
                    response.raise_for_status()
                    logger.info("SSE connection established")
                    retries = 0
                    for frame in parse_sse(response.iter_lines()):
                        self.handle_frame(frame)
                        received += 1
                        if max_frames is not None and received >= max_frames:
                            return received
                finally:
                    response.close()
                failure = 'stream closed by server'
            except requests.RequestException as e:
                failure = e

            retries += 1
            if retries > self.max_retries:
                logger.error(f"SSE connection lost after {self.max_retries} retries: {failure}")
                raise RelayDisconnected(str(failure))

            delay = self.backoff_base * 2 ** (retries - 1)
            logger.warning(f"SSE connection error: {failure}. Retry {retries}/{self.max_retries} in {delay}s")
            self.sleep(delay)

class MessageThread:
    """Messages of one conversation, newest last, paged backwards by offset"""

    def __init__(self, base_url: str, conversation_id: str, shop_id: int,
                 page_size: int = 25, timeout: float = 30):
        self.base_url = base_url.rstrip('/')
        self.conversation_id = conversation_id
        self.shop_id = shop_id
        self.page_size = page_size
        self.timeout = timeout
        self.messages: List[Dict[str, Any]] = []
        self.next_offset = None
        self.error = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_offset)

    def fetch(self, offset: str = None) -> List[Dict[str, Any]]:
        self.error = None
        try:
            response = requests.get(
                f"{self.base_url}/api/msg/get_message",
                params={
                    'conversationId': self.conversation_id,
                    'shopId': self.shop_id,
                    'pageSize': self.page_size,
                    'offset': offset,
                    '_': int(time.time() * 1000),
                },
                timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()['response']
        except (requests.RequestException, KeyError, ValueError) as e:
            self.error = 'Failed to load more messages' if offset else 'Failed to fetch messages'
            logger.error(f"Error fetching messages for {self.conversation_id}: {e}")
            raise

        # the API returns newest first
        formatted = [format_message(m, self.shop_id) for m in body.get('messages', [])]
        formatted.reverse()

        if offset:
            self.messages = formatted + self.messages
        else:
            self.messages = formatted

        self.next_offset = (body.get('page_result') or {}).get('next_offset') or None
        return formatted

    def load_more(self) -> List[Dict[str, Any]]:
        if not self.next_offset:
            return []
        return self.fetch(self.next_offset)

    def handle_frame(self, frame: Dict[str, Any]):
        """Append a relayed message that belongs to this conversation"""
        if frame.get('type') != NEW_MESSAGE or frame.get('conversation_id') != self.conversation_id:
            return

        self.messages.append(format_message({
            'message_id': frame.get('message_id'),
            'from_shop_id': frame.get('sender'),
            'message_type': frame.get('message_type'),
            'content': frame.get('content'),
            'created_timestamp': frame.get('timestamp'),
        }, self.shop_id))
