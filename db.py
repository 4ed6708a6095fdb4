import logging
import sqlite3

import click
from flask import current_app, g
from flask.cli import with_appcontext
from werkzeug.security import generate_password_hash

logger = logging.getLogger(__name__)

SCHEMA = '''
    CREATE TABLE IF NOT EXISTS users (
        user_id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL UNIQUE COLLATE NOCASE,
        name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'STUDENT',
        password_hash TEXT,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    CREATE TABLE IF NOT EXISTS teachers (
        teacher_id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL UNIQUE,
        department TEXT,
        specialization TEXT,
        FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE CASCADE
    );
    CREATE TABLE IF NOT EXISTS classes (
        class_id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        level TEXT NOT NULL,
        section TEXT NOT NULL,
        UNIQUE(name, section)
    );
    CREATE TABLE IF NOT EXISTS students (
        student_id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL UNIQUE,
        class_id INTEGER NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE CASCADE,
        FOREIGN KEY (class_id) REFERENCES classes(class_id)
    );
    CREATE TABLE IF NOT EXISTS subjects (
        subject_id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        category TEXT NOT NULL,
        multi_slot_allowed INTEGER NOT NULL DEFAULT 0,
        teacher_id INTEGER NOT NULL,
        class_id INTEGER NOT NULL,
        ib_group TEXT,
        level TEXT,
        FOREIGN KEY (teacher_id) REFERENCES teachers(teacher_id),
        FOREIGN KEY (class_id) REFERENCES classes(class_id),
        UNIQUE(name, class_id)
    );
    CREATE TABLE IF NOT EXISTS rooms (
        room_id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        capacity INTEGER NOT NULL DEFAULT 0
    );
    CREATE TABLE IF NOT EXISTS time_slots (
        slot_id INTEGER PRIMARY KEY AUTOINCREMENT,
        label TEXT NOT NULL UNIQUE,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        day_of_week TEXT
    );
    CREATE TABLE IF NOT EXISTS timetable_entries (
        entry_id INTEGER PRIMARY KEY AUTOINCREMENT,
        class_id INTEGER NOT NULL,
        subject_id INTEGER NOT NULL,
        room_id INTEGER NOT NULL,
        slot_id INTEGER NOT NULL,
        day_of_week TEXT NOT NULL,
        color_code TEXT,
        FOREIGN KEY (class_id) REFERENCES classes(class_id),
        FOREIGN KEY (subject_id) REFERENCES subjects(subject_id),
        FOREIGN KEY (room_id) REFERENCES rooms(room_id),
        FOREIGN KEY (slot_id) REFERENCES time_slots(slot_id)
    );
    CREATE TABLE IF NOT EXISTS swap_requests (
        request_id INTEGER PRIMARY KEY AUTOINCREMENT,
        requester_id INTEGER NOT NULL,
        target_id INTEGER NOT NULL,
        from_entry_id INTEGER NOT NULL,
        to_entry_id INTEGER NOT NULL,
        reason TEXT,
        status TEXT NOT NULL DEFAULT 'PENDING',
        admin_notes TEXT,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (requester_id) REFERENCES users(user_id) ON DELETE CASCADE,
        FOREIGN KEY (target_id) REFERENCES users(user_id) ON DELETE CASCADE,
        FOREIGN KEY (from_entry_id) REFERENCES timetable_entries(entry_id) ON DELETE CASCADE,
        FOREIGN KEY (to_entry_id) REFERENCES timetable_entries(entry_id) ON DELETE CASCADE
    );
    CREATE TABLE IF NOT EXISTS academic_periods (
        period_id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        type TEXT NOT NULL,
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        description TEXT,
        color_code TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        UNIQUE(name, type)
    );
'''


# --- DATABASE HELPERS ---
def get_db():
    db = getattr(g, '_database', None)
    if db is None:
        db = sqlite3.connect(current_app.config['DATABASE'])
        db.row_factory = sqlite3.Row
        db.execute('PRAGMA foreign_keys = ON')
        g._database = db
    return db


def close_connection(exception):
    db = g.pop('_database', None)
    if db is not None:
        db.close()


def rows_to_dicts(rows):
    return [dict(row) for row in rows]


def init_db():
    db = get_db()
    cur = db.cursor()
    cur.executescript(SCHEMA)

    cur.execute("SELECT 1 FROM users WHERE role = 'ADMIN'")
    if cur.fetchone() is None:
        emails = current_app.config.get('ADMIN_EMAILS') or []
        email = emails[0] if emails else 'admin@example.com'
        cur.execute('INSERT OR IGNORE INTO users (email, name, role, password_hash) VALUES (?, ?, ?, ?)',
                    (email, 'Admin User', 'ADMIN', generate_password_hash(current_app.config['ADMIN_PASSWORD'])))
        logger.info('Created bootstrap admin account %s', email)

    db.commit()


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create the tables and the bootstrap admin."""
    init_db()
    click.echo('Initialized the database.')


def init_app(app):
    app.teardown_appcontext(close_connection)
    app.cli.add_command(init_db_command)
