from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Max, Q
from django.utils import timezone

from clinic.models import Message, Notification
from clinic.sanitize import clean_text
from clinic.services.events import push_to_user
from clinic.services.notifications import notify

User = get_user_model()

MAX_LENGTH = 2000


def serialize_message(m: Message) -> dict:
    return {
        'id': m.id,
        'senderId': m.sender_id,
        'receiverId': m.receiver_id,
        'content': m.content,
        'read': m.read,
        'createdAt': m.created_at.isoformat() if m.created_at else None,
    }


def can_message(sender: User, receiver: User) -> bool:
    if sender.id == receiver.id or not receiver.is_active:
        return False
    if sender.is_admin_role or receiver.is_admin_role:
        return True
    return {sender.role, receiver.role} == {'patient', 'doctor'}


def send_message(sender: User, receiver: User, content: str) -> Message:
    if not can_message(sender, receiver):
        raise PermissionError('Messaging is only allowed between patients and doctors.')
    content = clean_text(content)
    if not content:
        raise ValueError('Message cannot be empty.')
    if len(content) > MAX_LENGTH:
        raise ValueError(f'Message exceeds {MAX_LENGTH} characters.')

    with transaction.atomic():
        msg = Message.objects.create(sender=sender, receiver=receiver, content=content)
        notify(receiver, Notification.KIND_MESSAGE, f"New message from {sender.display_name}",
               content[:140])
    payload = serialize_message(msg)
    push_to_user(receiver.id, 'message.new', payload)
    push_to_user(sender.id, 'message.new', payload)
    return msg


def _thread(a_id: int, b_id: int):
    return Message.objects.filter(
        Q(sender_id=a_id, receiver_id=b_id) | Q(sender_id=b_id, receiver_id=a_id)
    )


def history(user: User, other: User, *, page: int = 1, page_size: int = 50) -> tuple[list[dict], int]:
    """Page through a conversation, newest page first, oldest first within a page.

    Incoming unread messages on the returned page are marked read.
    """
    page = max(1, int(page or 1))
    page_size = min(200, max(1, int(page_size or 50)))
    qs = _thread(user.id, other.id)
    total = qs.count()
    start = (page - 1) * page_size
    msgs = list(qs.order_by('-created_at', '-id')[start:start + page_size])

    unread_ids = [m.id for m in msgs if m.receiver_id == user.id and not m.read]
    if unread_ids:
        Message.objects.filter(id__in=unread_ids).update(read=True, read_at=timezone.now())
        for m in msgs:
            if m.id in unread_ids:
                m.read = True
    return [serialize_message(m) for m in reversed(msgs)], total


def conversations(user: User) -> list[dict]:
    """One entry per counterpart: last message and how many of theirs are unread."""
    sent = Message.objects.filter(sender=user).values('receiver_id').annotate(last=Max('created_at'))
    received = (
        Message.objects.filter(receiver=user).values('sender_id')
        .annotate(last=Max('created_at'), unread=Count('id', filter=Q(read=False)))
    )
    summary: dict[int, dict] = {}
    for row in sent:
        summary[row['receiver_id']] = {'last': row['last'], 'unread': 0}
    for row in received:
        entry = summary.setdefault(row['sender_id'], {'last': row['last'], 'unread': 0})
        entry['last'] = max(entry['last'], row['last'])
        entry['unread'] = row['unread']

    users = User.objects.in_bulk(list(summary))
    items = []
    for other_id, entry in sorted(summary.items(), key=lambda kv: kv[1]['last'], reverse=True):
        other = users.get(other_id)
        if other is None:
            continue
        last = _thread(user.id, other_id).order_by('-created_at', '-id').first()
        items.append({
            'userId': other.id,
            'name': other.display_name,
            'role': other.role,
            'lastMessage': serialize_message(last) if last else None,
            'unread': entry['unread'],
        })
    return items


def unread_count(user: User, *, from_user_id: Optional[int] = None) -> int:
    qs = Message.objects.filter(receiver=user, read=False)
    if from_user_id:
        qs = qs.filter(sender_id=from_user_id)
    return qs.count()
