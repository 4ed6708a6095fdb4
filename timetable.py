import logging
import random
from datetime import date, datetime, timedelta

from config import DAYS, subject_color
from db import get_db, rows_to_dicts
from errors import GenerationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ENTRY_SELECT = '''
    SELECT te.entry_id, te.class_id, te.subject_id, te.room_id, te.slot_id, te.day_of_week, te.color_code,
           s.name AS subject_name, s.category, s.multi_slot_allowed, s.teacher_id,
           u.user_id AS teacher_user_id, u.name AS teacher_name, u.email AS teacher_email,
           c.name AS class_name, c.section, c.level AS class_level,
           r.name AS room_name, r.capacity AS room_capacity,
           ts.label AS slot_label, ts.start_time, ts.end_time
    FROM timetable_entries te
    JOIN subjects s ON te.subject_id = s.subject_id
    JOIN teachers t ON s.teacher_id = t.teacher_id
    JOIN users u ON t.user_id = u.user_id
    JOIN classes c ON te.class_id = c.class_id
    JOIN rooms r ON te.room_id = r.room_id
    JOIN time_slots ts ON te.slot_id = ts.slot_id
'''

DAY_ORDER = 'CASE te.day_of_week ' + ' '.join(
    f"WHEN '{day}' THEN {i}" for i, day in enumerate(DAYS)) + ' ELSE 99 END'

INSERT_ENTRY = '''
    INSERT INTO timetable_entries (class_id, subject_id, room_id, slot_id, day_of_week, color_code)
    VALUES (:class_id, :subject_id, :room_id, :slot_id, :day_of_week, :color_code)
'''


# --- QUERIES ---
def get_entry(entry_id):
    row = get_db().execute(ENTRY_SELECT + ' WHERE te.entry_id = ?', (entry_id,)).fetchone()
    return dict(row) if row else None


def get_timetable(class_id=None, teacher_id=None, student_id=None, curriculum=None, section=None):
    db = get_db()
    clauses, params = [], []

    if class_id:
        clauses.append('te.class_id = ?')
        params.append(class_id)
    elif teacher_id:
        clauses.append('s.teacher_id = ?')
        params.append(teacher_id)
    elif student_id:
        student = db.execute('SELECT class_id FROM students WHERE student_id = ?', (student_id,)).fetchone()
        if student is None:
            return []
        clauses.append('te.class_id = ?')
        params.append(student['class_id'])

    if curriculum:
        clauses.append('c.level = ?')
        params.append(curriculum)
    if section:
        clauses.append('c.section = ?')
        params.append(section)

    query = ENTRY_SELECT
    if clauses:
        query += ' WHERE ' + ' AND '.join(clauses)
    query += f' ORDER BY {DAY_ORDER}, ts.start_time, te.entry_id'
    return rows_to_dicts(db.execute(query, params).fetchall())


def timetable_stats():
    db = get_db()

    def count(table):
        return db.execute(f'SELECT COUNT(*) FROM {table}').fetchone()[0]

    return {
        'time_slots': count('time_slots'),
        'rooms': count('rooms'),
        'subjects': count('subjects'),
        'classes': count('classes'),
        'days': len(DAYS),
    }


def parse_week_start(value):
    if not value:
        raise ValidationError('Week start date is required')
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00')).date()
    except ValueError:
        raise ValidationError('Invalid week start date format')


def week_timetable(week_start, **filters):
    start = parse_week_start(week_start)
    end = start + timedelta(days=6)
    return {
        'week_start': start.isoformat(),
        'week_end': end.isoformat(),
        'timetable': get_timetable(**filters),
    }


# --- TIMETABLE GENERATION ---
def generate_timetable(class_id=None, teacher_id=None):
    """Randomly fill one day per class, then copy it to the rest of the week.

    Only same-class collisions are avoided: a slot used by one subject of a
    class is not offered to the next subject of that class unless the subject
    allows multiple slots. Rooms are picked at random without checks.
    """
    db = get_db()
    cur = db.cursor()

    time_slots = cur.execute('SELECT * FROM time_slots ORDER BY start_time, slot_id').fetchall()
    rooms = cur.execute('SELECT * FROM rooms ORDER BY room_id').fetchall()
    if class_id:
        subjects = cur.execute('SELECT * FROM subjects WHERE class_id = ? ORDER BY subject_id', (class_id,)).fetchall()
    elif teacher_id:
        subjects = cur.execute('SELECT * FROM subjects WHERE teacher_id = ? ORDER BY subject_id', (teacher_id,)).fetchall()
    else:
        subjects = cur.execute('SELECT * FROM subjects ORDER BY subject_id').fetchall()

    if not time_slots:
        raise GenerationError('No time slots found. Please create time slots first.')
    if not rooms:
        raise GenerationError('No rooms found. Please create rooms first.')
    if not subjects:
        raise GenerationError('No subjects found. Please create subjects first.')

    try:
        if class_id:
            cur.execute('DELETE FROM timetable_entries WHERE class_id = ?', (class_id,))
        elif teacher_id:
            cur.execute('''
                DELETE FROM timetable_entries
                WHERE subject_id IN (SELECT subject_id FROM subjects WHERE teacher_id = ?)
            ''', (teacher_id,))
        else:
            cur.execute('DELETE FROM timetable_entries')

        first_day = []
        used_slots = set()
        for subject in subjects:
            available = [slot for slot in time_slots if (subject['class_id'], slot['slot_id']) not in used_slots]
            if not available:
                logger.warning('No free slot left for subject %s in class %s', subject['name'], subject['class_id'])
                continue

            slot = random.choice(available)
            room = random.choice(rooms)
            first_day.append({
                'class_id': subject['class_id'],
                'subject_id': subject['subject_id'],
                'room_id': room['room_id'],
                'slot_id': slot['slot_id'],
                'color_code': subject_color(subject['category']),
            })

            if not subject['multi_slot_allowed']:
                used_slots.add((subject['class_id'], slot['slot_id']))

        for day in DAYS:
            cur.executemany(INSERT_ENTRY, [dict(entry, day_of_week=day) for entry in first_day])

        db.commit()
    except Exception:
        db.rollback()
        raise

    created = len(first_day) * len(DAYS)
    logger.info('Generated %d timetable entries (class=%s, teacher=%s)', created, class_id, teacher_id)
    return {'success': True, 'message': 'Timetable generated successfully', 'entries': created}


# --- MANUAL EDITS ---
def assign_subjects(slot_id, day_of_week, subject_ids, room_id=None):
    if not slot_id or not day_of_week or not isinstance(subject_ids, list):
        raise ValidationError('slot_id, day_of_week, and subject_ids array are required')
    if day_of_week not in DAYS:
        raise ValidationError(f'day_of_week must be one of {", ".join(DAYS)}')

    db = get_db()
    cur = db.cursor()

    if cur.execute('SELECT 1 FROM time_slots WHERE slot_id = ?', (slot_id,)).fetchone() is None:
        raise NotFoundError('Time slot not found')

    subject_ids = list(dict.fromkeys(subject_ids))
    subjects = []
    if subject_ids:
        placeholders = ','.join('?' * len(subject_ids))
        subjects = cur.execute(f'SELECT * FROM subjects WHERE subject_id IN ({placeholders})',
                               subject_ids).fetchall()
    if len(subjects) != len(subject_ids):
        raise NotFoundError('One or more subjects not found')

    if room_id:
        if cur.execute('SELECT 1 FROM rooms WHERE room_id = ?', (room_id,)).fetchone() is None:
            raise NotFoundError('Room not found')
    else:
        room = cur.execute('SELECT room_id FROM rooms ORDER BY room_id LIMIT 1').fetchone()
        if room is None:
            raise ValidationError('No rooms available and no room_id provided')
        room_id = room['room_id']

    try:
        cur.execute('DELETE FROM timetable_entries WHERE slot_id = ? AND day_of_week = ?', (slot_id, day_of_week))
        entry_ids = []
        for subject in subjects:
            cur.execute(INSERT_ENTRY, {
                'class_id': subject['class_id'],
                'subject_id': subject['subject_id'],
                'room_id': room_id,
                'slot_id': slot_id,
                'day_of_week': day_of_week,
                'color_code': subject_color(subject['category']),
            })
            entry_ids.append(cur.lastrowid)
        db.commit()
    except Exception:
        db.rollback()
        raise

    return [get_entry(entry_id) for entry_id in entry_ids]


def swap_entry_subjects(cur, from_entry, to_entry):
    cur.execute('UPDATE timetable_entries SET subject_id = ? WHERE entry_id = ?',
                (to_entry['subject_id'], from_entry['entry_id']))
    cur.execute('UPDATE timetable_entries SET subject_id = ? WHERE entry_id = ?',
                (from_entry['subject_id'], to_entry['entry_id']))


def direct_swap(from_id, to_id):
    if not from_id or not to_id:
        raise ValidationError('from_id and to_id are required')

    from_entry, to_entry = get_entry(from_id), get_entry(to_id)
    if from_entry is None or to_entry is None:
        raise NotFoundError('One or both timetable entries not found')

    db = get_db()
    try:
        swap_entry_subjects(db.cursor(), from_entry, to_entry)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info('Swapped subjects of entries %s and %s', from_id, to_id)
    return {'from_entry': get_entry(from_id), 'to_entry': get_entry(to_id)}
