import logging
from functools import wraps

from flask import current_app, flash, g, redirect, request, session, url_for
from werkzeug.security import check_password_hash, generate_password_hash

from config import ROLE_HOME
from db import get_db
from errors import AuthenticationRequired, ConflictError, PermissionDenied, ValidationError

logger = logging.getLogger(__name__)


# --- USERS ---
def load_user(user_id):
    db = get_db()
    row = db.execute('SELECT user_id, email, name, role, created_at FROM users WHERE user_id = ?',
                     (user_id,)).fetchone()
    if row is None:
        return None
    user = dict(row)
    user['teacher'] = None
    user['student'] = None

    teacher = db.execute('SELECT * FROM teachers WHERE user_id = ?', (user_id,)).fetchone()
    if teacher is not None:
        user['teacher'] = dict(teacher)
        user['teacher']['subjects'] = [dict(s) for s in db.execute(
            'SELECT subject_id, name, class_id FROM subjects WHERE teacher_id = ?',
            (teacher['teacher_id'],)).fetchall()]

    student = db.execute('''
        SELECT st.*, c.name AS class_name, c.section, c.level
        FROM students st JOIN classes c ON st.class_id = c.class_id
        WHERE st.user_id = ?
    ''', (user_id,)).fetchone()
    if student is not None:
        user['student'] = dict(student)
    return user


def current_user():
    if 'user' not in g:
        user_id = session.get('user_id')
        g.user = load_user(user_id) if user_id is not None else None
    return g.user


def is_admin_email(email):
    admins = current_app.config.get('ADMIN_EMAILS') or []
    return (email or '').strip().lower() in admins


def authenticate(email, password):
    row = get_db().execute('SELECT * FROM users WHERE email = ?', ((email or '').strip(),)).fetchone()
    if row is None or not row['password_hash'] or not check_password_hash(row['password_hash'], password or ''):
        logger.warning('Failed login for %s', email)
        return None
    return load_user(row['user_id'])


def register_user(email, name, password):
    email = (email or '').strip()
    if not email or not password:
        raise ValidationError('Email and password are required')
    db = get_db()
    if db.execute('SELECT 1 FROM users WHERE email = ?', (email,)).fetchone():
        raise ConflictError('An account with this email already exists')
    role = 'ADMIN' if is_admin_email(email) else 'STUDENT'
    cur = db.execute('INSERT INTO users (email, name, role, password_hash) VALUES (?, ?, ?, ?)',
                     (email, name or email.split('@')[0], role, generate_password_hash(password)))
    db.commit()
    logger.info('Registered %s as %s', email, role)
    return load_user(cur.lastrowid)


def login_user(user, remember=False):
    session.clear()
    session.permanent = bool(remember)
    session['user_id'] = user['user_id']
    g.user = user


def logout_user():
    session.clear()
    g.pop('user', None)


def role_redirect(user):
    if user is None:
        return url_for('login')
    return ROLE_HOME.get(user['role'], ROLE_HOME['STUDENT'])


# --- DECORATORS ---
def _wants_json():
    return request.path.startswith('/api/')


def require_auth():
    user = current_user()
    if user is None:
        raise AuthenticationRequired()
    return user


def require_role(*roles):
    user = require_auth()
    if user['role'] not in roles:
        raise PermissionDenied(f"Access denied. Required role: {' or '.join(roles)}")
    return user


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_user() is None:
            if _wants_json():
                raise AuthenticationRequired()
            flash('You need to be logged in to access this page.', 'warning')
            return redirect(url_for('login'))
        return f(*args, **kwargs)
    return decorated_function


def role_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = current_user()
            if user is None or user['role'] not in roles:
                if _wants_json():
                    require_role(*roles)
                flash('You do not have access to that page.', 'warning')
                return redirect(role_redirect(user))
            return f(*args, **kwargs)
        return decorated_function
    return decorator


# --- PERMISSIONS ---
def can_teacher_edit_subject(user, subject_id):
    if not user or user['role'] != 'TEACHER' or not user['teacher']:
        return False
    return any(s['subject_id'] == subject_id for s in user['teacher']['subjects'])


def can_teacher_edit_entry(user, entry_id):
    if not user or user['role'] != 'TEACHER' or not user['teacher']:
        return False
    entry = get_db().execute('SELECT subject_id FROM timetable_entries WHERE entry_id = ?',
                             (entry_id,)).fetchone()
    if entry is None:
        return False
    return can_teacher_edit_subject(user, entry['subject_id'])


def can_student_view_class(user, class_id):
    if not user or user['role'] != 'STUDENT' or not user['student']:
        return False
    return user['student']['class_id'] == class_id


def accessible_data(user):
    if user is None:
        return None
    if user['role'] == 'ADMIN':
        return {
            'type': 'admin',
            'can_edit': True,
            'can_delete': True,
            'can_create': True,
            'accessible_classes': 'all',
            'accessible_subjects': 'all',
            'accessible_teachers': 'all',
        }
    if user['role'] == 'TEACHER':
        subjects = user['teacher']['subjects'] if user['teacher'] else []
        return {
            'type': 'teacher',
            'can_edit': False,
            'can_delete': False,
            'can_create': False,
            'can_request_swaps': True,
            'accessible_subjects': [s['subject_id'] for s in subjects],
            'accessible_classes': sorted({s['class_id'] for s in subjects}),
        }
    if user['role'] == 'STUDENT':
        student = user['student']
        return {
            'type': 'student',
            'can_edit': False,
            'can_delete': False,
            'can_create': False,
            'accessible_class': student['class_id'] if student else None,
            'accessible_class_data': {
                'class_id': student['class_id'],
                'name': student['class_name'],
                'section': student['section'],
            } if student else None,
        }
    return None
