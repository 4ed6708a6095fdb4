import logging

import click
from flask.cli import with_appcontext
from werkzeug.security import generate_password_hash

from db import get_db, init_db

logger = logging.getLogger(__name__)

TIME_SLOTS = [
    ('08:00 AM', '08:00', '09:00'),
    ('09:00 AM', '09:00', '10:00'),
    ('10:00 AM', '10:00', '11:00'),
    ('11:00 AM', '11:00', '12:00'),
    ('12:00 PM', '12:00', '13:00'),
    ('01:00 PM', '13:00', '14:00'),
    ('02:00 PM', '14:00', '15:00'),
    ('03:00 PM', '15:00', '16:00'),
]

ROOMS = [('Room A1', 30), ('Room A2', 25), ('Room B1', 35), ('Room B2', 30), ('Lab 1', 20), ('Lab 2', 20)]

ACADEMIC_PERIODS = [
    ('Fall Term', 'TERM', '2024-09-01', '2024-12-20', 'First semester of the academic year', '#3B82F6'),
    ('Winter Break', 'HOLIDAY', '2024-12-21', '2025-01-05', 'Winter holiday break', '#EF4444'),
    ('Spring Term', 'TERM', '2025-01-06', '2025-05-15', 'Second semester of the academic year', '#10B981'),
    ('Spring Break', 'HOLIDAY', '2025-03-15', '2025-03-22', 'Spring break holiday', '#F59E0B'),
    ('Final Exams', 'EXAM', '2025-05-16', '2025-05-30', 'End of year examinations', '#8B5CF6'),
    ('Summer Break', 'HOLIDAY', '2025-06-01', '2025-08-31', 'Summer vacation', '#06B6D4'),
]

CLASSES = [('Grade 11', 'DP', 'A'), ('Grade 9', 'MYP', 'A')]

# name, category, ib_group, level
IB_SUBJECTS = [
    ('English A: Language and Literature', 'Individual', 'LANGUAGES', 'DP'),
    ('Spanish B', 'Individual', 'LANGUAGES', 'MYP'),
    ('French B', 'Individual', 'LANGUAGES', 'DP'),
    ('History', 'Societies', 'INDIVIDUALS_AND_SOCIETIES', 'DP'),
    ('Geography', 'Societies', 'INDIVIDUALS_AND_SOCIETIES', 'MYP'),
    ('Economics', 'Societies', 'INDIVIDUALS_AND_SOCIETIES', 'DP'),
    ('Psychology', 'Societies', 'INDIVIDUALS_AND_SOCIETIES', 'DP'),
    ('Biology', 'Sciences', 'SCIENCES', 'DP'),
    ('Chemistry', 'Sciences', 'SCIENCES', 'MYP'),
    ('Physics', 'Sciences', 'SCIENCES', 'DP'),
    ('Environmental Systems', 'Sciences', 'SCIENCES', 'MYP'),
    ('Mathematics: Analysis and Approaches', 'Sciences', 'MATHEMATICS', 'DP'),
    ('Mathematics: Applications and Interpretation', 'Sciences', 'MATHEMATICS', 'DP'),
    ('Mathematics', 'Sciences', 'MATHEMATICS', 'MYP'),
    ('Visual Arts', 'Individual', 'ARTS', 'DP'),
    ('Music', 'Individual', 'ARTS', 'MYP'),
    ('Theatre', 'Individual', 'ARTS', 'DP'),
]

DEMO_TEACHER = ('teacher@example.com', 'Demo Teacher', 'teacher123', 'Sciences')


def seed_db():
    init_db()
    db = get_db()
    cur = db.cursor()

    cur.executemany('INSERT OR IGNORE INTO time_slots (label, start_time, end_time) VALUES (?, ?, ?)', TIME_SLOTS)
    cur.executemany('INSERT OR IGNORE INTO rooms (name, capacity) VALUES (?, ?)', ROOMS)
    cur.executemany('''
        INSERT OR IGNORE INTO academic_periods (name, type, start_date, end_date, description, color_code)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', ACADEMIC_PERIODS)
    cur.executemany('INSERT OR IGNORE INTO classes (name, level, section) VALUES (?, ?, ?)', CLASSES)

    email, name, password, department = DEMO_TEACHER
    cur.execute("INSERT OR IGNORE INTO users (email, name, role, password_hash) VALUES (?, ?, 'TEACHER', ?)",
                (email, name, generate_password_hash(password)))
    user_id = cur.execute('SELECT user_id FROM users WHERE email = ?', (email,)).fetchone()['user_id']
    cur.execute('INSERT OR IGNORE INTO teachers (user_id, department) VALUES (?, ?)', (user_id, department))

    teacher = cur.execute('SELECT teacher_id FROM teachers ORDER BY teacher_id LIMIT 1').fetchone()
    klass = cur.execute('SELECT class_id FROM classes ORDER BY class_id LIMIT 1').fetchone()
    cur.executemany('''
        INSERT OR IGNORE INTO subjects (name, category, teacher_id, class_id, ib_group, level)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', [(n, c, teacher['teacher_id'], klass['class_id'], g, lvl) for n, c, g, lvl in IB_SUBJECTS])

    db.commit()
    logger.info('Database seeded')


@click.command('seed')
@with_appcontext
def seed_command():
    """Load the demo time slots, rooms, periods, classes and subjects."""
    seed_db()
    click.echo('Database seeded successfully!')


def init_app(app):
    app.cli.add_command(seed_command)
