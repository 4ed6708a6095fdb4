import logging
from datetime import date, datetime

from flask import Blueprint, jsonify, request
from werkzeug.security import generate_password_hash

from auth import current_user, login_required, role_required
from config import (ACADEMIC_PERIOD_TYPES, CLASS_LEVELS, DAYS, IB_GROUPS, IB_LEVELS, ROLES,
                    SUBJECT_CATEGORIES)
from db import get_db, rows_to_dicts
from errors import ConflictError, NotFoundError, ValidationError
from timetable import get_timetable, timetable_stats

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin_bp', __name__, url_prefix='/api')

SUBJECT_SELECT = '''
    SELECT s.*, u.name AS teacher_name, u.email AS teacher_email,
           c.name AS class_name, c.section, c.level AS class_level
    FROM subjects s
    JOIN teachers t ON s.teacher_id = t.teacher_id
    JOIN users u ON t.user_id = u.user_id
    JOIN classes c ON s.class_id = c.class_id
'''

TEACHER_SELECT = '''
    SELECT t.*, u.name, u.email, u.role
    FROM teachers t JOIN users u ON t.user_id = u.user_id
'''


def body():
    return request.get_json(silent=True) or {}


def require_fields(data, *fields):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise ValidationError(f"{', '.join(fields)} are required")


def id_list(raw):
    try:
        return [int(i) for i in raw.split(',') if i.strip()]
    except ValueError:
        raise ValidationError('ids must be a comma separated list of integers')


def parse_time(value, field):
    for fmt in ('%H:%M', '%H:%M:%S'):
        try:
            return datetime.strptime(value, fmt).strftime('%H:%M')
        except (TypeError, ValueError):
            pass
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).strftime('%H:%M')
    except ValueError:
        raise ValidationError(f'Invalid {field} format')


def parse_capacity(value, default=0):
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('capacity must be an integer')


def parse_day(value, default=None):
    if not value:
        return default
    if value not in DAYS:
        raise ValidationError(f'day_of_week must be one of {", ".join(DAYS)}')
    return value


def fetch_or_404(query, params, message):
    row = get_db().execute(query, params).fetchone()
    if row is None:
        raise NotFoundError(message)
    return row


# --- CLASSES ---
def class_details(class_id):
    db = get_db()
    row = fetch_or_404('SELECT * FROM classes WHERE class_id = ?', (class_id,), 'Class not found')
    data = dict(row)
    data['subjects'] = rows_to_dicts(db.execute(SUBJECT_SELECT + ' WHERE s.class_id = ? ORDER BY s.name',
                                                (class_id,)).fetchall())
    data['students'] = rows_to_dicts(db.execute('''
        SELECT st.student_id, st.user_id, u.name, u.email
        FROM students st JOIN users u ON st.user_id = u.user_id
        WHERE st.class_id = ? ORDER BY u.name
    ''', (class_id,)).fetchall())
    return data


@admin_bp.route('/classes', methods=['GET'])
@login_required
def list_classes():
    db = get_db()
    if request.args.get('distinct') == 'true':
        sections = db.execute('SELECT DISTINCT section FROM classes ORDER BY section').fetchall()
        levels = db.execute('SELECT DISTINCT level FROM classes ORDER BY level').fetchall()
        return jsonify({
            'sections': [r['section'] for r in sections],
            'curriculum_levels': [r['level'] for r in levels],
        })

    classes = rows_to_dicts(db.execute('SELECT * FROM classes ORDER BY name, section').fetchall())
    subjects = db.execute(SUBJECT_SELECT).fetchall()
    students = db.execute('SELECT class_id, COUNT(*) AS n FROM students GROUP BY class_id').fetchall()
    student_counts = {r['class_id']: r['n'] for r in students}
    for c in classes:
        c['subjects'] = [dict(s) for s in subjects if s['class_id'] == c['class_id']]
        c['student_count'] = student_counts.get(c['class_id'], 0)
    return jsonify(classes)


@admin_bp.route('/classes/<int:class_id>', methods=['GET'])
@role_required('ADMIN')
def get_class(class_id):
    data = class_details(class_id)
    data['timetable_entries'] = get_timetable(class_id=class_id)
    return jsonify(data)


@admin_bp.route('/classes', methods=['POST'])
@role_required('ADMIN')
def create_class():
    data = body()
    require_fields(data, 'name', 'level', 'section')
    if data['level'] not in CLASS_LEVELS:
        raise ValidationError(f'level must be one of {", ".join(CLASS_LEVELS)}')

    db = get_db()
    if db.execute('SELECT 1 FROM classes WHERE name = ? AND section = ?',
                  (data['name'], data['section'])).fetchone():
        raise ConflictError('Class with this name and section already exists')

    cur = db.execute('INSERT INTO classes (name, level, section) VALUES (?, ?, ?)',
                     (data['name'], data['level'], data['section']))
    db.commit()
    return jsonify(class_details(cur.lastrowid)), 201


@admin_bp.route('/classes/<int:class_id>', methods=['PUT'])
@role_required('ADMIN')
def update_class(class_id):
    data = body()
    db = get_db()
    existing = fetch_or_404('SELECT * FROM classes WHERE class_id = ?', (class_id,), 'Class not found')

    name = data.get('name') or existing['name']
    section = data.get('section') or existing['section']
    level = data.get('level') or existing['level']
    if level not in CLASS_LEVELS:
        raise ValidationError(f'level must be one of {", ".join(CLASS_LEVELS)}')

    if (name, section) != (existing['name'], existing['section']):
        conflict = db.execute('SELECT class_id FROM classes WHERE name = ? AND section = ?',
                              (name, section)).fetchone()
        if conflict and conflict['class_id'] != class_id:
            raise ConflictError('Class with this name and section already exists')

    db.execute('UPDATE classes SET name = ?, level = ?, section = ? WHERE class_id = ?',
               (name, level, section, class_id))
    db.commit()
    return jsonify(class_details(class_id))


@admin_bp.route('/classes/<int:class_id>', methods=['DELETE'])
@role_required('ADMIN')
def delete_class(class_id):
    db = get_db()
    existing = fetch_or_404('SELECT * FROM classes WHERE class_id = ?', (class_id,), 'Class not found')

    counts = {
        'subjects_count': db.execute('SELECT COUNT(*) FROM subjects WHERE class_id = ?', (class_id,)).fetchone()[0],
        'students_count': db.execute('SELECT COUNT(*) FROM students WHERE class_id = ?', (class_id,)).fetchone()[0],
        'timetable_entries_count': db.execute('SELECT COUNT(*) FROM timetable_entries WHERE class_id = ?',
                                              (class_id,)).fetchone()[0],
    }
    if any(counts.values()):
        raise ConflictError('Cannot delete class with associated subjects, students, or timetable entries',
                            details=counts)

    db.execute('DELETE FROM classes WHERE class_id = ?', (class_id,))
    db.commit()
    return jsonify({
        'message': 'Class deleted successfully',
        'deleted_class': {'class_id': class_id, 'name': existing['name'], 'section': existing['section']},
    })


# --- SUBJECTS ---
def subject_details(subject_id):
    row = fetch_or_404(SUBJECT_SELECT + ' WHERE s.subject_id = ?', (subject_id,), 'Subject not found')
    return dict(row)


def check_subject_refs(db, teacher_id=None, class_id=None):
    if teacher_id and db.execute('SELECT 1 FROM teachers WHERE teacher_id = ?', (teacher_id,)).fetchone() is None:
        raise NotFoundError('Teacher not found')
    if class_id and db.execute('SELECT 1 FROM classes WHERE class_id = ?', (class_id,)).fetchone() is None:
        raise NotFoundError('Class not found')


def apply_subject_update(db, subject_id, data):
    existing = fetch_or_404('SELECT * FROM subjects WHERE subject_id = ?', (subject_id,), 'Subject not found')

    name = data.get('name') or existing['name']
    class_id = data.get('class_id') or existing['class_id']
    teacher_id = data.get('teacher_id') or existing['teacher_id']
    category = data.get('category') or existing['category']
    if category not in SUBJECT_CATEGORIES:
        raise ValidationError(f'category must be one of {", ".join(SUBJECT_CATEGORIES)}')
    multi = data.get('multi_slot_allowed')
    multi = int(multi) if isinstance(multi, bool) else existing['multi_slot_allowed']

    if (name, class_id) != (existing['name'], existing['class_id']):
        conflict = db.execute('SELECT subject_id FROM subjects WHERE name = ? AND class_id = ?',
                              (name, class_id)).fetchone()
        if conflict and conflict['subject_id'] != subject_id:
            raise ConflictError('Subject with this name already exists in this class')

    check_subject_refs(db,
                       teacher_id if teacher_id != existing['teacher_id'] else None,
                       class_id if class_id != existing['class_id'] else None)

    db.execute('''
        UPDATE subjects SET name = ?, category = ?, multi_slot_allowed = ?, teacher_id = ?, class_id = ?,
                            ib_group = ?, level = ?
        WHERE subject_id = ?
    ''', (name, category, multi, teacher_id, class_id,
          data.get('ib_group') or existing['ib_group'], data.get('level') or existing['level'], subject_id))


@admin_bp.route('/subjects', methods=['GET'])
@role_required('ADMIN')
def list_subjects():
    clauses, params = [], []
    for arg, column in (('class_id', 's.class_id'), ('teacher_id', 's.teacher_id'), ('category', 's.category')):
        if request.args.get(arg):
            clauses.append(f'{column} = ?')
            params.append(request.args[arg])
    query = SUBJECT_SELECT
    if clauses:
        query += ' WHERE ' + ' AND '.join(clauses)
    query += ' ORDER BY s.name'
    return jsonify(rows_to_dicts(get_db().execute(query, params).fetchall()))


@admin_bp.route('/subjects/<int:subject_id>', methods=['GET'])
@role_required('ADMIN')
def get_subject(subject_id):
    data = subject_details(subject_id)
    data['timetable_entries'] = [e for e in get_timetable(class_id=data['class_id'])
                                 if e['subject_id'] == subject_id]
    return jsonify(data)


@admin_bp.route('/subjects', methods=['POST'])
@role_required('ADMIN')
def create_subject():
    data = body()
    require_fields(data, 'name', 'category', 'teacher_id', 'class_id', 'ib_group', 'level')
    if data['category'] not in SUBJECT_CATEGORIES:
        raise ValidationError(f'category must be one of {", ".join(SUBJECT_CATEGORIES)}')

    db = get_db()
    check_subject_refs(db, data['teacher_id'], data['class_id'])
    if db.execute('SELECT 1 FROM subjects WHERE name = ? AND class_id = ?',
                  (data['name'], data['class_id'])).fetchone():
        raise ConflictError('Subject with this name already exists in this class')

    cur = db.execute('''
        INSERT INTO subjects (name, category, multi_slot_allowed, teacher_id, class_id, ib_group, level)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (data['name'], data['category'], int(bool(data.get('multi_slot_allowed'))),
          data['teacher_id'], data['class_id'], data['ib_group'], data['level']))
    db.commit()
    return jsonify(subject_details(cur.lastrowid)), 201


@admin_bp.route('/subjects/<int:subject_id>', methods=['PUT'])
@role_required('ADMIN')
def update_subject(subject_id):
    db = get_db()
    apply_subject_update(db, subject_id, body())
    db.commit()
    return jsonify(subject_details(subject_id))


@admin_bp.route('/subjects', methods=['PUT'])
@role_required('ADMIN')
def bulk_update_subjects():
    subjects = body().get('subjects')
    if not isinstance(subjects, list):
        raise ValidationError('Subjects array is required')

    db = get_db()
    try:
        for item in subjects:
            apply_subject_update(db, item.get('subject_id'), item)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return jsonify([subject_details(item['subject_id']) for item in subjects])


@admin_bp.route('/subjects/<int:subject_id>', methods=['DELETE'])
@role_required('ADMIN')
def delete_subject(subject_id):
    db = get_db()
    existing = fetch_or_404('SELECT * FROM subjects WHERE subject_id = ?', (subject_id,), 'Subject not found')
    entries = db.execute('SELECT COUNT(*) FROM timetable_entries WHERE subject_id = ?', (subject_id,)).fetchone()[0]
    if entries:
        raise ConflictError('Cannot delete subject with associated timetable entries',
                            details={'timetable_entries_count': entries})

    db.execute('DELETE FROM subjects WHERE subject_id = ?', (subject_id,))
    db.commit()
    return jsonify({
        'message': 'Subject deleted successfully',
        'deleted_subject': {'subject_id': subject_id, 'name': existing['name'], 'category': existing['category']},
    })


@admin_bp.route('/subjects', methods=['DELETE'])
@role_required('ADMIN')
def bulk_delete_subjects():
    if not request.args.get('ids'):
        raise ValidationError('Subject IDs are required')
    ids = id_list(request.args['ids'])
    db = get_db()
    db.execute(f"DELETE FROM subjects WHERE subject_id IN ({','.join('?' * len(ids))})", ids)
    db.commit()
    return jsonify({'message': 'Subjects deleted successfully'})


# --- TEACHERS ---
def teacher_details(teacher_id):
    db = get_db()
    row = fetch_or_404(TEACHER_SELECT + ' WHERE t.teacher_id = ?', (teacher_id,), 'Teacher not found')
    data = dict(row)
    data['subjects'] = rows_to_dicts(db.execute(SUBJECT_SELECT + ' WHERE s.teacher_id = ? ORDER BY s.name',
                                                (teacher_id,)).fetchall())
    return data


def apply_teacher_update(db, teacher_id, data, user_data=None):
    teacher = fetch_or_404('SELECT * FROM teachers WHERE teacher_id = ?', (teacher_id,), 'Teacher not found')
    db.execute('UPDATE teachers SET department = ?, specialization = ? WHERE teacher_id = ?',
               (data.get('department', teacher['department']),
                data.get('specialization', teacher['specialization']), teacher_id))
    user_data = user_data or {}
    if user_data.get('name'):
        db.execute('UPDATE users SET name = ? WHERE user_id = ?', (user_data['name'], teacher['user_id']))
    if user_data.get('email'):
        db.execute('UPDATE users SET email = ? WHERE user_id = ?', (user_data['email'], teacher['user_id']))


def delete_teacher_user(db, user_id):
    teacher = db.execute('SELECT teacher_id FROM teachers WHERE user_id = ?', (user_id,)).fetchone()
    if teacher is not None:
        subjects = db.execute('SELECT COUNT(*) FROM subjects WHERE teacher_id = ?',
                              (teacher['teacher_id'],)).fetchone()[0]
        if subjects:
            raise ConflictError('Cannot delete teacher with assigned subjects',
                                details={'subjects_count': subjects})
    db.execute('DELETE FROM users WHERE user_id = ?', (user_id,))


@admin_bp.route('/teachers', methods=['GET'])
@role_required('ADMIN')
def list_teachers():
    clauses, params = [], []
    for arg in ('department', 'specialization'):
        if request.args.get(arg):
            clauses.append(f't.{arg} = ?')
            params.append(request.args[arg])
    query = TEACHER_SELECT
    if clauses:
        query += ' WHERE ' + ' AND '.join(clauses)
    query += ' ORDER BY u.name'
    teachers = get_db().execute(query, params).fetchall()
    return jsonify([teacher_details(t['teacher_id']) for t in teachers])


@admin_bp.route('/teachers', methods=['POST'])
@role_required('ADMIN')
def create_teacher():
    data = body()
    require_fields(data, 'name', 'email', 'department')
    db = get_db()

    user = db.execute('SELECT * FROM users WHERE email = ?', (data['email'],)).fetchone()
    try:
        if user is not None:
            db.execute("UPDATE users SET role = 'TEACHER', name = ? WHERE user_id = ?",
                       (data['name'], user['user_id']))
            teacher = db.execute('SELECT teacher_id FROM teachers WHERE user_id = ?', (user['user_id'],)).fetchone()
            if teacher is None:
                cur = db.execute('INSERT INTO teachers (user_id, department, specialization) VALUES (?, ?, ?)',
                                 (user['user_id'], data['department'], data.get('specialization')))
                teacher_id = cur.lastrowid
            else:
                teacher_id = teacher['teacher_id']
                db.execute('UPDATE teachers SET department = ?, specialization = ? WHERE teacher_id = ?',
                           (data['department'], data.get('specialization'), teacher_id))
            status = 200
        else:
            password_hash = generate_password_hash(data['password']) if data.get('password') else None
            cur = db.execute("INSERT INTO users (email, name, role, password_hash) VALUES (?, ?, 'TEACHER', ?)",
                             (data['email'], data['name'], password_hash))
            cur = db.execute('INSERT INTO teachers (user_id, department, specialization) VALUES (?, ?, ?)',
                             (cur.lastrowid, data['department'], data.get('specialization')))
            teacher_id = cur.lastrowid
            status = 201
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info('Teacher %s saved (%s)', data['email'], 'promoted' if status == 200 else 'created')
    return jsonify(teacher_details(teacher_id)), status


@admin_bp.route('/teachers/<int:teacher_id>', methods=['GET'])
@role_required('ADMIN')
def get_teacher(teacher_id):
    data = teacher_details(teacher_id)
    data['timetable_entries'] = get_timetable(teacher_id=teacher_id)
    return jsonify(data)


@admin_bp.route('/teachers/<int:teacher_id>', methods=['PUT'])
@role_required('ADMIN')
def update_teacher(teacher_id):
    data = body()
    db = get_db()
    apply_teacher_update(db, teacher_id, data, data.get('user') or {'name': data.get('name'),
                                                                    'email': data.get('email')})
    db.commit()
    return jsonify(teacher_details(teacher_id))


@admin_bp.route('/teachers', methods=['PUT'])
@role_required('ADMIN')
def bulk_update_teachers():
    teachers = body().get('teachers')
    if not isinstance(teachers, list):
        raise ValidationError('Teachers array is required')
    db = get_db()
    try:
        for item in teachers:
            apply_teacher_update(db, item.get('teacher_id'), item, item.get('user'))
        db.commit()
    except Exception:
        db.rollback()
        raise
    return jsonify([teacher_details(item['teacher_id']) for item in teachers])


@admin_bp.route('/teachers/<int:teacher_id>', methods=['DELETE'])
@role_required('ADMIN')
def delete_teacher(teacher_id):
    db = get_db()
    teacher = fetch_or_404('SELECT * FROM teachers WHERE teacher_id = ?', (teacher_id,), 'Teacher not found')
    delete_teacher_user(db, teacher['user_id'])
    db.commit()
    return jsonify({'message': 'Teacher deleted successfully'})


@admin_bp.route('/teachers', methods=['DELETE'])
@role_required('ADMIN')
def bulk_delete_teachers():
    ids, email = request.args.get('ids'), request.args.get('email')
    if not ids and not email:
        raise ValidationError('Teacher IDs or email is required')

    db = get_db()
    try:
        if email:
            user = fetch_or_404('SELECT user_id FROM users WHERE email = ?', (email,), 'User not found')
            delete_teacher_user(db, user['user_id'])
        else:
            for teacher_id in id_list(ids):
                teacher = db.execute('SELECT user_id FROM teachers WHERE teacher_id = ?', (teacher_id,)).fetchone()
                if teacher is not None:
                    delete_teacher_user(db, teacher['user_id'])
        db.commit()
    except Exception:
        db.rollback()
        raise
    return jsonify({'message': 'Teachers deleted successfully'})


# --- ROOMS ---
@admin_bp.route('/rooms', methods=['GET'])
@role_required('ADMIN')
def list_rooms():
    return jsonify(rows_to_dicts(get_db().execute('SELECT * FROM rooms ORDER BY name').fetchall()))


@admin_bp.route('/rooms', methods=['POST'])
@role_required('ADMIN')
def create_room():
    data = body()
    require_fields(data, 'name')
    db = get_db()
    if db.execute('SELECT 1 FROM rooms WHERE name = ?', (data['name'],)).fetchone():
        raise ConflictError('Room with this name already exists')
    cur = db.execute('INSERT INTO rooms (name, capacity) VALUES (?, ?)',
                     (data['name'], parse_capacity(data.get('capacity'))))
    db.commit()
    return jsonify(dict(db.execute('SELECT * FROM rooms WHERE room_id = ?', (cur.lastrowid,)).fetchone())), 201


@admin_bp.route('/rooms/<int:room_id>', methods=['PUT'])
@role_required('ADMIN')
def update_room(room_id):
    data = body()
    db = get_db()
    room = fetch_or_404('SELECT * FROM rooms WHERE room_id = ?', (room_id,), 'Room not found')
    name = data.get('name') or room['name']
    conflict = db.execute('SELECT room_id FROM rooms WHERE name = ?', (name,)).fetchone()
    if conflict and conflict['room_id'] != room_id:
        raise ConflictError('Room with this name already exists')
    capacity = parse_capacity(data.get('capacity'), room['capacity'])
    db.execute('UPDATE rooms SET name = ?, capacity = ? WHERE room_id = ?', (name, capacity, room_id))
    db.commit()
    return jsonify(dict(db.execute('SELECT * FROM rooms WHERE room_id = ?', (room_id,)).fetchone()))


@admin_bp.route('/rooms/<int:room_id>', methods=['DELETE'])
@role_required('ADMIN')
def delete_room(room_id):
    db = get_db()
    fetch_or_404('SELECT 1 FROM rooms WHERE room_id = ?', (room_id,), 'Room not found')
    entries = db.execute('SELECT COUNT(*) FROM timetable_entries WHERE room_id = ?', (room_id,)).fetchone()[0]
    if entries:
        raise ConflictError('Cannot delete room with associated timetable entries',
                            details={'timetable_entries_count': entries})
    db.execute('DELETE FROM rooms WHERE room_id = ?', (room_id,))
    db.commit()
    return jsonify({'message': 'Room deleted successfully'})


# --- TIME SLOTS ---
def find_overlapping_slot(db, start, end, day_of_week, exclude_id=None):
    query = '''
        SELECT * FROM time_slots
        WHERE day_of_week IS ? AND start_time < ? AND end_time > ?
    '''
    params = [day_of_week, end, start]
    if exclude_id is not None:
        query += ' AND slot_id != ?'
        params.append(exclude_id)
    return db.execute(query, params).fetchone()


def insert_time_slot(db, data):
    require_fields(data, 'label', 'start_time', 'end_time')
    start = parse_time(data['start_time'], 'start time')
    end = parse_time(data['end_time'], 'end time')
    if end <= start:
        raise ValidationError('End time must be after start time')
    day = parse_day(data.get('day_of_week'))
    overlap = find_overlapping_slot(db, start, end, day)
    if overlap:
        raise ConflictError('Time slot overlaps with existing time slot', details=dict(overlap))
    cur = db.execute('INSERT INTO time_slots (label, start_time, end_time, day_of_week) VALUES (?, ?, ?, ?)',
                     (data['label'], start, end, day))
    return cur.lastrowid


@admin_bp.route('/timeslots', methods=['GET'])
@role_required('ADMIN')
def list_time_slots():
    return jsonify(rows_to_dicts(get_db().execute(
        'SELECT * FROM time_slots ORDER BY start_time, slot_id').fetchall()))


@admin_bp.route('/timeslots', methods=['POST'])
@role_required('ADMIN')
def create_time_slot():
    db = get_db()
    slot_id = insert_time_slot(db, body())
    db.commit()
    return jsonify(dict(db.execute('SELECT * FROM time_slots WHERE slot_id = ?', (slot_id,)).fetchone())), 201


@admin_bp.route('/timeslots/bulk', methods=['POST'])
@role_required('ADMIN')
def bulk_create_time_slots():
    slots = body().get('time_slots')
    if not isinstance(slots, list) or not slots:
        raise ValidationError('time_slots array is required')
    db = get_db()
    try:
        ids = [insert_time_slot(db, item) for item in slots]
        db.commit()
    except Exception:
        db.rollback()
        raise
    placeholders = ','.join('?' * len(ids))
    return jsonify(rows_to_dicts(db.execute(
        f'SELECT * FROM time_slots WHERE slot_id IN ({placeholders}) ORDER BY start_time', ids).fetchall())), 201


@admin_bp.route('/timeslots/<int:slot_id>', methods=['GET'])
@role_required('ADMIN')
def get_time_slot(slot_id):
    data = dict(fetch_or_404('SELECT * FROM time_slots WHERE slot_id = ?', (slot_id,), 'Time slot not found'))
    data['timetable_entries'] = [e for e in get_timetable() if e['slot_id'] == slot_id]
    return jsonify(data)


@admin_bp.route('/timeslots/<int:slot_id>', methods=['PUT'])
@role_required('ADMIN')
def update_time_slot(slot_id):
    data = body()
    db = get_db()
    slot = fetch_or_404('SELECT * FROM time_slots WHERE slot_id = ?', (slot_id,), 'Time slot not found')

    start = parse_time(data['start_time'], 'start time') if data.get('start_time') else slot['start_time']
    end = parse_time(data['end_time'], 'end time') if data.get('end_time') else slot['end_time']
    if end <= start:
        raise ValidationError('End time must be after start time')
    day = parse_day(data.get('day_of_week'), slot['day_of_week'])

    overlap = find_overlapping_slot(db, start, end, day, exclude_id=slot_id)
    if overlap:
        raise ConflictError('Time slot overlaps with existing time slot', details=dict(overlap))

    db.execute('UPDATE time_slots SET label = ?, start_time = ?, end_time = ?, day_of_week = ? WHERE slot_id = ?',
               (data.get('label') or slot['label'], start, end, day, slot_id))
    db.commit()
    return jsonify(dict(db.execute('SELECT * FROM time_slots WHERE slot_id = ?', (slot_id,)).fetchone()))


@admin_bp.route('/timeslots/<int:slot_id>', methods=['DELETE'])
@role_required('ADMIN')
def delete_time_slot(slot_id):
    db = get_db()
    slot = fetch_or_404('SELECT * FROM time_slots WHERE slot_id = ?', (slot_id,), 'Time slot not found')
    entries = db.execute('SELECT COUNT(*) FROM timetable_entries WHERE slot_id = ?', (slot_id,)).fetchone()[0]
    if entries:
        raise ConflictError('Cannot delete time slot with associated timetable entries',
                            details={'timetable_entries_count': entries})
    db.execute('DELETE FROM time_slots WHERE slot_id = ?', (slot_id,))
    db.commit()
    return jsonify({'message': 'Time slot deleted successfully',
                    'deleted_time_slot': {'slot_id': slot_id, 'label': slot['label']}})


# --- USERS ---
@admin_bp.route('/users', methods=['GET'])
@role_required('ADMIN')
def list_users():
    return jsonify(rows_to_dicts(get_db().execute(
        'SELECT user_id, email, name, role, created_at FROM users ORDER BY name').fetchall()))


@admin_bp.route('/users/<int:user_id>/role', methods=['PATCH'])
@role_required('ADMIN')
def update_user_role(user_id):
    role = body().get('role')
    if role not in ROLES:
        raise ValidationError('Invalid role')

    db = get_db()
    fetch_or_404('SELECT 1 FROM users WHERE user_id = ?', (user_id,), 'User not found')
    db.execute('UPDATE users SET role = ? WHERE user_id = ?', (role, user_id))
    if role == 'TEACHER':
        db.execute('INSERT OR IGNORE INTO teachers (user_id) VALUES (?)', (user_id,))
    db.commit()
    logger.info('User %s role changed to %s by %s', user_id, role, current_user()['email'])

    user = dict(db.execute('SELECT user_id, email, name, role FROM users WHERE user_id = ?', (user_id,)).fetchone())
    return jsonify({'message': 'User role updated successfully', 'user': user})


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@role_required('ADMIN')
def delete_user(user_id):
    if user_id == current_user()['user_id']:
        raise ValidationError('You cannot delete your own account')
    db = get_db()
    fetch_or_404('SELECT 1 FROM users WHERE user_id = ?', (user_id,), 'User not found')
    delete_teacher_user(db, user_id)
    db.commit()
    return jsonify({'success': True})


# --- REFERENCE DATA ---
@admin_bp.route('/enums', methods=['GET'])
@role_required('ADMIN')
def enums():
    return jsonify({
        'class_levels': CLASS_LEVELS,
        'ib_levels': IB_LEVELS,
        'ib_groups': IB_GROUPS,
        'subject_categories': SUBJECT_CATEGORIES,
    })


@admin_bp.route('/stats', methods=['GET'])
@role_required('ADMIN')
def stats():
    return jsonify(timetable_stats())


@admin_bp.route('/academic-periods', methods=['GET'])
@login_required
def list_academic_periods():
    return jsonify(rows_to_dicts(get_db().execute(
        'SELECT * FROM academic_periods ORDER BY start_date').fetchall()))


@admin_bp.route('/academic-periods', methods=['POST'])
@role_required('ADMIN')
def create_academic_period():
    data = body()
    require_fields(data, 'name', 'type', 'start_date', 'end_date')
    if data['type'] not in ACADEMIC_PERIOD_TYPES:
        raise ValidationError(f'type must be one of {", ".join(ACADEMIC_PERIOD_TYPES)}')
    try:
        start, end = date.fromisoformat(data['start_date']), date.fromisoformat(data['end_date'])
    except ValueError:
        raise ValidationError('Dates must be in YYYY-MM-DD format')
    if end < start:
        raise ValidationError('End date must not be before start date')

    db = get_db()
    cur = db.execute('''
        INSERT INTO academic_periods (name, type, start_date, end_date, description, color_code, is_active)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (data['name'], data['type'], start.isoformat(), end.isoformat(), data.get('description'),
          data.get('color_code'), int(data.get('is_active', True))))
    db.commit()
    return jsonify(dict(db.execute('SELECT * FROM academic_periods WHERE period_id = ?',
                                   (cur.lastrowid,)).fetchone())), 201


@admin_bp.route('/academic-periods/<int:period_id>', methods=['DELETE'])
@role_required('ADMIN')
def delete_academic_period(period_id):
    db = get_db()
    fetch_or_404('SELECT 1 FROM academic_periods WHERE period_id = ?', (period_id,), 'Academic period not found')
    db.execute('DELETE FROM academic_periods WHERE period_id = ?', (period_id,))
    db.commit()
    return jsonify({'message': 'Academic period deleted successfully'})
