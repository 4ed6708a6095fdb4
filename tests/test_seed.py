from db import get_db
from seed import IB_SUBJECTS, seed_db
from timetable import generate_timetable


def count(table):
    return get_db().execute(f'SELECT COUNT(*) FROM {table}').fetchone()[0]


def test_seed_is_idempotent(app):
    with app.app_context():
        seed_db()
        seed_db()
        assert count('time_slots') == 8
        assert count('rooms') == 6
        assert count('academic_periods') == 6
        assert count('classes') == 2
        assert count('subjects') == len(IB_SUBJECTS)
        assert count("users WHERE role = 'ADMIN'") == 1


def test_seeded_data_can_be_generated(app):
    with app.app_context():
        seed_db()
        result = generate_timetable()
    # one class with eight hourly slots
    assert result['entries'] == 8 * 5


def test_cli_commands(app):
    runner = app.test_cli_runner()
    assert 'Initialized the database.' in runner.invoke(args=['init-db']).output
    assert 'Database seeded successfully!' in runner.invoke(args=['seed']).output
    with app.app_context():
        assert count('time_slots') == 8
