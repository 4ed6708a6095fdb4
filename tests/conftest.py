import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from db import get_db, init_db

ADMIN_EMAIL = 'admin@school.test'
PASSWORD = 'secret123'


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'DATABASE': str(tmp_path / 'timetable.db'),
        'SECRET_KEY': 'test-secret',
        'ADMIN_EMAILS': [ADMIN_EMAIL],
        'ADMIN_PASSWORD': PASSWORD,
        'MAIL_SUPPRESS_SEND': True,
        'MAIL_SERVER': '',
    })
    with app.app_context():
        init_db()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


def add_user(email, name, role, password=PASSWORD):
    cur = get_db().execute('INSERT INTO users (email, name, role, password_hash) VALUES (?, ?, ?, ?)',
                           (email, name, role, generate_password_hash(password)))
    return cur.lastrowid


def add_teacher(email, name, department='Sciences'):
    user_id = add_user(email, name, 'TEACHER')
    cur = get_db().execute('INSERT INTO teachers (user_id, department) VALUES (?, ?)', (user_id, department))
    return cur.lastrowid


def add_subject(name, category, teacher_id, class_id, multi=False):
    cur = get_db().execute('''
        INSERT INTO subjects (name, category, multi_slot_allowed, teacher_id, class_id, ib_group, level)
        VALUES (?, ?, ?, ?, ?, 'SCIENCES', 'DP')
    ''', (name, category, int(multi), teacher_id, class_id))
    return cur.lastrowid


@pytest.fixture
def sample(app):
    """Two classes, two teachers, one student, two rooms, three slots and four subjects."""
    with app.app_context():
        db = get_db()
        ids = {}
        ids['class_a'] = db.execute(
            "INSERT INTO classes (name, level, section) VALUES ('Grade 11', 'DP', 'A')").lastrowid
        ids['class_b'] = db.execute(
            "INSERT INTO classes (name, level, section) VALUES ('Grade 9', 'MYP', 'B')").lastrowid
        ids['teacher_1'] = add_teacher('t1@school.test', 'Alice Teacher')
        ids['teacher_2'] = add_teacher('t2@school.test', 'Bob Teacher', 'Humanities')

        ids['student_user'] = add_user('s1@school.test', 'Sam Student', 'STUDENT')
        db.execute('INSERT INTO students (user_id, class_id) VALUES (?, ?)', (ids['student_user'], ids['class_a']))

        ids['rooms'] = [db.execute('INSERT INTO rooms (name, capacity) VALUES (?, ?)', (name, cap)).lastrowid
                        for name, cap in (('Room A1', 30), ('Lab 1', 20))]
        ids['slots'] = [db.execute('INSERT INTO time_slots (label, start_time, end_time) VALUES (?, ?, ?)',
                                   (label, start, end)).lastrowid
                        for label, start, end in (('08:00 AM', '08:00', '09:00'),
                                                  ('09:00 AM', '09:00', '10:00'),
                                                  ('10:00 AM', '10:00', '11:00'))]

        ids['biology'] = add_subject('Biology', 'Sciences', ids['teacher_1'], ids['class_a'])
        ids['history'] = add_subject('History', 'Societies', ids['teacher_2'], ids['class_a'])
        ids['music'] = add_subject('Music', 'Individual', ids['teacher_1'], ids['class_a'], multi=True)
        ids['physics'] = add_subject('Physics', 'Sciences', ids['teacher_2'], ids['class_b'])
        db.commit()
    return ids


def login(client, email, password=PASSWORD):
    response = client.post('/api/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return client


@pytest.fixture
def admin_client(app):
    return login(app.test_client(), ADMIN_EMAIL)


@pytest.fixture
def teacher_client(app, sample):
    return login(app.test_client(), 't1@school.test')


@pytest.fixture
def other_teacher_client(app, sample):
    return login(app.test_client(), 't2@school.test')


@pytest.fixture
def student_client(app, sample):
    return login(app.test_client(), 's1@school.test')


@pytest.fixture
def generated(app, sample, admin_client):
    response = admin_client.post('/api/generate', json={})
    assert response.status_code == 200
    return sample
