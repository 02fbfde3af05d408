"""
Test cases for the conversation list reducer
"""

import pytest

from conversations import ConversationIndex, apply_update

SHOP_ID = 555

def message(conversation_id='c-1', message_id='m-1', text='Halo kak', timestamp=1700000000,
            from_buyer=True, shop_id=SHOP_ID):
    buyer = (9001, 'budi_buyer')
    shop = (shop_id, 'Toko Satu')
    sender, receiver = (buyer, shop) if from_buyer else (shop, buyer)
    return {
        'conversation_id': conversation_id,
        'message_id': message_id,
        'sender': sender[0],
        'sender_name': sender[1],
        'receiver': receiver[0],
        'receiver_name': receiver[1],
        'shop_id': shop_id,
        'timestamp': timestamp,
        'content': {'text': text},
    }

def new_message(**kwargs):
    return {'type': 'new_message', 'data': message(**kwargs)}

def test_new_message_creates_conversation():
    conversations = apply_update([], new_message())

    assert len(conversations) == 1
    conversation = conversations[0]
    assert conversation['conversation_id'] == 'c-1'
    assert conversation['unread_count'] == 1
    assert conversation['to_id'] == 9001
    assert conversation['to_name'] == 'budi_buyer'
    assert conversation['shop_name'] == 'Toko Satu'
    assert conversation['latest_message_content'] == {'text': 'Halo kak'}
    assert conversation['last_message_timestamp'] == 1700000000 * 1000000
    assert conversation['pinned'] is False
    assert conversation['mute'] is False

def test_new_message_from_shop_targets_buyer():
    conversation = apply_update([], new_message(from_buyer=False))[0]
    assert conversation['to_id'] == 9001
    assert conversation['shop_name'] == 'Toko Satu'

def test_repeated_new_message_increments_without_duplicate():
    conversations = apply_update([], new_message())
    conversations = apply_update(conversations, new_message(message_id='m-2', text='Masih ada?'))

    assert len(conversations) == 1
    assert conversations[0]['unread_count'] == 2
    assert conversations[0]['latest_message_id'] == 'm-2'
    assert conversations[0]['latest_message_content'] == {'text': 'Masih ada?'}

def test_new_message_moves_conversation_to_front():
    conversations = apply_update([], new_message(conversation_id='c-1'))
    conversations = apply_update(conversations, new_message(conversation_id='c-2'))
    assert [c['conversation_id'] for c in conversations] == ['c-2', 'c-1']

    conversations = apply_update(conversations, new_message(conversation_id='c-1', message_id='m-3'))
    assert [c['conversation_id'] for c in conversations] == ['c-1', 'c-2']

def test_apply_update_does_not_mutate_input():
    original = apply_update([], new_message())
    snapshot = [dict(c) for c in original]

    apply_update(original, new_message(message_id='m-2'))
    apply_update(original, {'type': 'mark_as_read', 'conversation_id': 'c-1'})

    assert original == snapshot

def test_mark_as_read_resets_unread_count():
    conversations = apply_update([], new_message())
    conversations = apply_update(conversations, new_message(message_id='m-2'))

    conversations = apply_update(conversations, {'type': 'mark_as_read', 'conversation_id': 'c-1'})

    assert conversations[0]['unread_count'] == 0

def test_mark_as_read_unknown_conversation_is_noop():
    conversations = apply_update([], new_message())

    updated = apply_update(conversations, {'type': 'mark_as_read', 'conversation_id': 'missing'})

    assert updated == conversations

def test_refresh_discards_one_shop():
    conversations = apply_update([], new_message(conversation_id='c-1', shop_id=1))
    conversations = apply_update(conversations, new_message(conversation_id='c-2', shop_id=2))

    remaining = apply_update(conversations, {'type': 'refresh', 'shop_id': 1})

    assert [c['conversation_id'] for c in remaining] == ['c-2']
    assert apply_update(conversations, {'type': 'refresh'}) == []

def test_unknown_update_type_raises():
    with pytest.raises(ValueError):
        apply_update([], {'type': 'typing'})

def test_index_refresh_reloads_from_loader():
    loaded = [{'conversation_id': 'c-9', 'shop_id': 1, 'unread_count': 0,
               'last_message_timestamp': 5}]
    calls = []

    def loader(shop_id):
        calls.append(shop_id)
        return loaded

    index = ConversationIndex(loader=loader)
    index.apply(new_message(conversation_id='c-1', shop_id=1, timestamp=1))
    index.apply(new_message(conversation_id='c-2', shop_id=2, timestamp=2))

    conversations = index.apply({'type': 'refresh', 'shop_id': 1})

    assert calls == [1]
    assert [c['conversation_id'] for c in conversations] == ['c-2', 'c-9']
    assert index.get('c-1') is None
