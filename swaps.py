import logging

from auth import can_teacher_edit_entry
from config import SWAP_STATUSES
from db import get_db
from errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from notifications import NotificationService
from timetable import get_entry, swap_entry_subjects

logger = logging.getLogger(__name__)

SWAP_SELECT = '''
    SELECT sr.*, ru.name AS requester_name, ru.email AS requester_email,
           tu.name AS target_name, tu.email AS target_email
    FROM swap_requests sr
    JOIN users ru ON sr.requester_id = ru.user_id
    JOIN users tu ON sr.target_id = tu.user_id
'''


def _with_entries(row):
    swap = dict(row)
    swap['from_entry'] = get_entry(swap['from_entry_id'])
    swap['to_entry'] = get_entry(swap['to_entry_id'])
    return swap


def get_swap_request(request_id):
    row = get_db().execute(SWAP_SELECT + ' WHERE sr.request_id = ?', (request_id,)).fetchone()
    return _with_entries(row) if row else None


def list_swap_requests(user, status=None, kind=None):
    clauses, params = [], []
    if status:
        clauses.append('sr.status = ?')
        params.append(status)

    if kind == 'sent':
        clauses.append('sr.requester_id = ?')
        params.append(user['user_id'])
    elif kind == 'received':
        clauses.append('sr.target_id = ?')
        params.append(user['user_id'])
    elif user['role'] != 'ADMIN':
        clauses.append('(sr.requester_id = ? OR sr.target_id = ?)')
        params.extend([user['user_id'], user['user_id']])

    query = SWAP_SELECT
    if clauses:
        query += ' WHERE ' + ' AND '.join(clauses)
    query += ' ORDER BY sr.created_at DESC, sr.request_id DESC'
    return [_with_entries(row) for row in get_db().execute(query, params).fetchall()]


def _notification_payload(user, from_entry, to_entry):
    return {
        'requester_email': user['email'],
        'requester_name': user['name'],
        'target_email': to_entry['teacher_email'],
        'target_name': to_entry['teacher_name'],
        'class_name': from_entry['class_name'],
        'subject_name': from_entry['subject_name'],
        'day_of_week': from_entry['day_of_week'],
        'time_slot': from_entry['slot_label'],
        'room_name': from_entry['room_name'],
    }


def create_swap_request(user, from_entry_id, to_entry_id, reason=None):
    if user['role'] != 'TEACHER':
        raise PermissionDenied('Only teachers can create swap requests')
    if not from_entry_id or not to_entry_id:
        raise ValidationError('from_entry_id and to_entry_id are required')

    from_entry, to_entry = get_entry(from_entry_id), get_entry(to_entry_id)
    if from_entry is None or to_entry is None:
        raise NotFoundError('One or both timetable entries not found')

    if not can_teacher_edit_entry(user, from_entry_id):
        raise PermissionDenied('You can only request swaps for your own subjects')
    if from_entry['teacher_user_id'] == to_entry['teacher_user_id']:
        raise ValidationError('You cannot swap with yourself')

    db = get_db()
    existing = db.execute('''
        SELECT 1 FROM swap_requests
        WHERE status = 'PENDING'
          AND ((from_entry_id = ? AND to_entry_id = ?) OR (from_entry_id = ? AND to_entry_id = ?))
    ''', (from_entry_id, to_entry_id, to_entry_id, from_entry_id)).fetchone()
    if existing:
        raise ConflictError('A pending swap request already exists for these entries')

    cur = db.execute('''
        INSERT INTO swap_requests (requester_id, target_id, from_entry_id, to_entry_id, reason, status)
        VALUES (?, ?, ?, ?, ?, 'PENDING')
    ''', (user['user_id'], to_entry['teacher_user_id'], from_entry_id, to_entry_id, reason or None))
    db.commit()
    request_id = cur.lastrowid
    logger.info('Swap request %s created by %s', request_id, user['email'])

    payload = _notification_payload(user, from_entry, to_entry)
    NotificationService.send_swap_request(payload)
    NotificationService.send_swap_confirmation(payload)

    return get_swap_request(request_id)


def update_swap_request(user, request_id, status, admin_notes=None):
    if not request_id or not status:
        raise ValidationError('request_id and status are required')
    if status not in SWAP_STATUSES:
        raise ValidationError(f'status must be one of {", ".join(SWAP_STATUSES)}')

    swap = get_swap_request(request_id)
    if swap is None:
        raise NotFoundError('Swap request not found')

    can_update = (user['role'] == 'ADMIN'
                  or swap['target_id'] == user['user_id']
                  or swap['requester_id'] == user['user_id'])
    if not can_update:
        raise PermissionDenied("You don't have permission to update this swap request")
    if swap['status'] != 'PENDING':
        raise ConflictError(f"Swap request is already {swap['status'].lower()}")

    db = get_db()
    cur = db.cursor()
    try:
        cur.execute('''
            UPDATE swap_requests SET status = ?, admin_notes = ?, updated_at = CURRENT_TIMESTAMP
            WHERE request_id = ?
        ''', (status, admin_notes or None, request_id))
        if status == 'APPROVED':
            swap_entry_subjects(cur, swap['from_entry'], swap['to_entry'])
        db.commit()
    except Exception:
        db.rollback()
        logger.exception('Failed to execute swap for request %s', request_id)
        raise

    if status == 'APPROVED':
        logger.info('Swap approved and executed: %s <-> %s', swap['from_entry_id'], swap['to_entry_id'])
        notify_swapped(get_entry(swap['from_entry_id']), get_entry(swap['to_entry_id']))

    return get_swap_request(request_id)


def notify_swapped(*entries):
    for entry in entries:
        if entry is None:
            continue
        NotificationService.send_timetable_change(
            entry['teacher_email'], entry['teacher_name'],
            f"{entry['class_name']} {entry['section']}", entry['subject_name'],
            entry['day_of_week'], entry['slot_label'], entry['room_name'], 'swapped')
