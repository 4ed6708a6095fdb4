from db import get_db


# --- CLASSES ---
def test_class_crud(admin_client):
    response = admin_client.post('/api/classes', json={'name': 'Grade 10', 'level': 'MYP', 'section': 'C'})
    assert response.status_code == 201
    class_id = response.get_json()['class_id']

    duplicate = admin_client.post('/api/classes', json={'name': 'Grade 10', 'level': 'MYP', 'section': 'C'})
    assert duplicate.status_code == 409

    updated = admin_client.put(f'/api/classes/{class_id}', json={'section': 'D'}).get_json()
    assert updated['section'] == 'D'
    assert updated['level'] == 'MYP'

    assert admin_client.get(f'/api/classes/{class_id}').get_json()['students'] == []
    assert admin_client.delete(f'/api/classes/{class_id}').status_code == 200
    assert admin_client.get(f'/api/classes/{class_id}').status_code == 404


def test_create_class_validation(admin_client):
    assert admin_client.post('/api/classes', json={'name': 'Grade 10'}).status_code == 400
    response = admin_client.post('/api/classes', json={'name': 'Grade 10', 'level': 'PYP', 'section': 'A'})
    assert response.status_code == 400


def test_delete_class_in_use(sample, admin_client):
    response = admin_client.delete(f"/api/classes/{sample['class_a']}")
    assert response.status_code == 409
    details = response.get_json()['details']
    assert details['subjects_count'] == 3
    assert details['students_count'] == 1


def test_classes_distinct(sample, student_client):
    data = student_client.get('/api/classes?distinct=true').get_json()
    assert data == {'sections': ['A', 'B'], 'curriculum_levels': ['DP', 'MYP']}


def test_classes_list_includes_subjects(sample, admin_client):
    classes = {c['class_id']: c for c in admin_client.get('/api/classes').get_json()}
    assert {s['name'] for s in classes[sample['class_a']]['subjects']} == {'Biology', 'History', 'Music'}
    assert classes[sample['class_a']]['student_count'] == 1


# --- SUBJECTS ---
def test_subject_crud(sample, admin_client):
    payload = {
        'name': 'Chemistry', 'category': 'Sciences', 'teacher_id': sample['teacher_1'],
        'class_id': sample['class_b'], 'ib_group': 'SCIENCES', 'level': 'MYP',
    }
    response = admin_client.post('/api/subjects', json=payload)
    assert response.status_code == 201
    subject = response.get_json()
    assert subject['teacher_name'] == 'Alice Teacher'
    assert subject['multi_slot_allowed'] == 0

    assert admin_client.post('/api/subjects', json=payload).status_code == 409

    updated = admin_client.put(f"/api/subjects/{subject['subject_id']}",
                               json={'multi_slot_allowed': True, 'category': 'Societies'}).get_json()
    assert updated['multi_slot_allowed'] == 1
    assert updated['category'] == 'Societies'

    assert admin_client.delete(f"/api/subjects/{subject['subject_id']}").status_code == 200


def test_create_subject_checks_references(sample, admin_client):
    payload = {
        'name': 'Chemistry', 'category': 'Sciences', 'teacher_id': 9999,
        'class_id': sample['class_b'], 'ib_group': 'SCIENCES', 'level': 'MYP',
    }
    assert admin_client.post('/api/subjects', json=payload).status_code == 404
    payload.update(teacher_id=sample['teacher_1'], category='Art')
    assert admin_client.post('/api/subjects', json=payload).status_code == 400
    assert admin_client.post('/api/subjects', json={'name': 'Chemistry'}).status_code == 400


def test_subject_filters(sample, admin_client):
    by_class = admin_client.get(f"/api/subjects?class_id={sample['class_b']}").get_json()
    assert [s['name'] for s in by_class] == ['Physics']
    by_teacher = admin_client.get(f"/api/subjects?teacher_id={sample['teacher_1']}").get_json()
    assert {s['name'] for s in by_teacher} == {'Biology', 'Music'}
    by_category = admin_client.get('/api/subjects?category=Societies').get_json()
    assert [s['name'] for s in by_category] == ['History']


def test_delete_subject_with_entries(generated, admin_client):
    assert admin_client.delete(f"/api/subjects/{generated['biology']}").status_code == 409


def test_bulk_subject_update_and_delete(sample, admin_client):
    response = admin_client.put('/api/subjects', json={'subjects': [
        {'subject_id': sample['biology'], 'name': 'Biology HL'},
        {'subject_id': sample['physics'], 'teacher_id': sample['teacher_1']},
    ]})
    assert response.status_code == 200
    names = {s['subject_id']: s for s in response.get_json()}
    assert names[sample['biology']]['name'] == 'Biology HL'
    assert names[sample['physics']]['teacher_id'] == sample['teacher_1']

    assert admin_client.put('/api/subjects', json={}).status_code == 400
    assert admin_client.delete('/api/subjects').status_code == 400

    response = admin_client.delete(f"/api/subjects?ids={sample['biology']},{sample['physics']}")
    assert response.status_code == 200
    remaining = {s['name'] for s in admin_client.get('/api/subjects').get_json()}
    assert remaining == {'History', 'Music'}


def test_subjects_admin_only(teacher_client):
    assert teacher_client.get('/api/subjects').status_code == 403


# --- TEACHERS ---
def test_create_teacher_new_user(admin_client):
    response = admin_client.post('/api/teachers', json={
        'name': 'Carol Teacher', 'email': 'carol@school.test', 'department': 'Arts', 'password': 'pw',
    })
    assert response.status_code == 201
    teacher = response.get_json()
    assert teacher['role'] == 'TEACHER'
    assert teacher['department'] == 'Arts'


def test_create_teacher_promotes_existing_user(sample, admin_client):
    response = admin_client.post('/api/teachers', json={
        'name': 'Sam Promoted', 'email': 's1@school.test', 'department': 'Sciences',
    })
    assert response.status_code == 200
    teacher = response.get_json()
    assert teacher['role'] == 'TEACHER'
    assert teacher['name'] == 'Sam Promoted'


def test_teacher_filters_and_update(sample, admin_client):
    humanities = admin_client.get('/api/teachers?department=Humanities').get_json()
    assert [t['email'] for t in humanities] == ['t2@school.test']

    updated = admin_client.put(f"/api/teachers/{sample['teacher_2']}", json={
        'specialization': 'History', 'user': {'name': 'Robert Teacher'},
    }).get_json()
    assert updated['specialization'] == 'History'
    assert updated['name'] == 'Robert Teacher'

    detail = admin_client.get(f"/api/teachers/{sample['teacher_1']}").get_json()
    assert {s['name'] for s in detail['subjects']} == {'Biology', 'Music'}


def test_delete_teacher(sample, admin_client):
    assert admin_client.delete(f"/api/teachers/{sample['teacher_1']}").status_code == 409

    created = admin_client.post('/api/teachers', json={
        'name': 'Dan', 'email': 'dan@school.test', 'department': 'Arts',
    }).get_json()
    assert admin_client.delete(f"/api/teachers/{created['teacher_id']}").status_code == 200
    assert admin_client.get(f"/api/teachers/{created['teacher_id']}").status_code == 404


def test_bulk_teacher_operations(sample, admin_client):
    response = admin_client.put('/api/teachers', json={'teachers': [
        {'teacher_id': sample['teacher_1'], 'department': 'Biology'},
    ]})
    assert response.get_json()[0]['department'] == 'Biology'

    admin_client.post('/api/teachers', json={'name': 'Eve', 'email': 'eve@school.test', 'department': 'Arts'})
    assert admin_client.delete('/api/teachers?email=eve@school.test').status_code == 200
    assert admin_client.delete('/api/teachers').status_code == 400


# --- ROOMS ---
def test_room_crud(admin_client):
    response = admin_client.post('/api/rooms', json={'name': 'Room Z9', 'capacity': 12})
    assert response.status_code == 201
    room = response.get_json()
    assert admin_client.post('/api/rooms', json={'name': 'Room Z9'}).status_code == 409

    updated = admin_client.put(f"/api/rooms/{room['room_id']}", json={'capacity': 40}).get_json()
    assert updated == {'room_id': room['room_id'], 'name': 'Room Z9', 'capacity': 40}
    assert admin_client.delete(f"/api/rooms/{room['room_id']}").status_code == 200


def test_rooms_sorted_by_name(sample, admin_client):
    assert [r['name'] for r in admin_client.get('/api/rooms').get_json()] == ['Lab 1', 'Room A1']


def test_delete_room_in_use(generated, admin_client):
    responses = [admin_client.delete(f'/api/rooms/{room_id}').status_code for room_id in generated['rooms']]
    assert 409 in responses


# --- TIME SLOTS ---
def test_time_slot_crud(admin_client):
    response = admin_client.post('/api/timeslots', json={
        'label': '08:00 AM', 'start_time': '08:00', 'end_time': '09:00',
    })
    assert response.status_code == 201
    slot = response.get_json()
    assert slot['start_time'] == '08:00'

    response = admin_client.put(f"/api/timeslots/{slot['slot_id']}", json={'end_time': '2024-01-01T09:30:00'})
    assert response.get_json()['end_time'] == '09:30'
    assert admin_client.get(f"/api/timeslots/{slot['slot_id']}").get_json()['timetable_entries'] == []
    assert admin_client.delete(f"/api/timeslots/{slot['slot_id']}").status_code == 200


def test_time_slot_validation(sample, admin_client):
    slot_id = sample['slots'][0]
    assert admin_client.post('/api/timeslots', json={'label': 'x'}).status_code == 400
    bad_order = admin_client.post('/api/timeslots', json={'label': 'x', 'start_time': '10:00', 'end_time': '09:00'})
    assert bad_order.status_code == 400
    bad_format = admin_client.put(f'/api/timeslots/{slot_id}', json={'start_time': '25:99'})
    assert bad_format.status_code == 400
    assert bad_format.get_json()['error'] == 'Invalid start time format'


def test_time_slot_overlap(sample, admin_client):
    response = admin_client.put(f"/api/timeslots/{sample['slots'][0]}", json={'end_time': '09:30'})
    assert response.status_code == 409

    # touching slots do not overlap
    response = admin_client.post('/api/timeslots', json={
        'label': '11:00 AM', 'start_time': '11:00', 'end_time': '12:00',
    })
    assert response.status_code == 201

    # a slot pinned to a weekday only clashes with slots on that same day
    response = admin_client.post('/api/timeslots', json={
        'label': 'Friday assembly', 'start_time': '08:30', 'end_time': '09:00', 'day_of_week': 'FRIDAY',
    })
    assert response.status_code == 201


def test_time_slot_bulk_create(admin_client):
    response = admin_client.post('/api/timeslots/bulk', json={'time_slots': [
        {'label': '08:00 AM', 'start_time': '08:00', 'end_time': '09:00'},
        {'label': '09:00 AM', 'start_time': '09:00', 'end_time': '10:00'},
    ]})
    assert response.status_code == 201
    assert [s['label'] for s in response.get_json()] == ['08:00 AM', '09:00 AM']

    response = admin_client.post('/api/timeslots/bulk', json={'time_slots': [
        {'label': '10:00 AM', 'start_time': '10:00', 'end_time': '11:00'},
        {'label': 'clash', 'start_time': '10:30', 'end_time': '11:30'},
    ]})
    assert response.status_code == 409
    assert len(admin_client.get('/api/timeslots').get_json()) == 2


def test_delete_time_slot_in_use(generated, admin_client):
    responses = [admin_client.delete(f'/api/timeslots/{slot_id}').status_code for slot_id in generated['slots']]
    assert 409 in responses


# --- USERS ---
def test_change_user_role_creates_teacher(app, sample, admin_client):
    response = admin_client.patch(f"/api/users/{sample['student_user']}/role", json={'role': 'TEACHER'})
    assert response.status_code == 200
    assert response.get_json()['user']['role'] == 'TEACHER'
    with app.app_context():
        assert get_db().execute('SELECT 1 FROM teachers WHERE user_id = ?', (sample['student_user'],)).fetchone()

    assert admin_client.patch(f"/api/users/{sample['student_user']}/role", json={'role': 'GOD'}).status_code == 400
    assert admin_client.patch('/api/users/9999/role', json={'role': 'ADMIN'}).status_code == 404


def test_delete_user(sample, admin_client):
    assert admin_client.delete(f"/api/users/{sample['student_user']}").get_json() == {'success': True}
    emails = [u['email'] for u in admin_client.get('/api/users').get_json()]
    assert 's1@school.test' not in emails

    me = admin_client.get('/api/auth/me').get_json()
    assert admin_client.delete(f"/api/users/{me['user_id']}").status_code == 400


# --- REFERENCE DATA ---
def test_enums(admin_client):
    data = admin_client.get('/api/enums').get_json()
    assert data['class_levels'] == ['MYP', 'DP']
    assert data['ib_levels'] == ['SL', 'HL']
    assert 'MATHEMATICS' in data['ib_groups']
    assert data['subject_categories'] == ['Individual', 'Societies', 'Sciences']


def test_academic_periods(admin_client, student_client):
    response = admin_client.post('/api/academic-periods', json={
        'name': 'Spring Term', 'type': 'TERM', 'start_date': '2025-01-06', 'end_date': '2025-05-15',
    })
    assert response.status_code == 201
    period = response.get_json()
    admin_client.post('/api/academic-periods', json={
        'name': 'Fall Term', 'type': 'TERM', 'start_date': '2024-09-01', 'end_date': '2024-12-20',
    })

    names = [p['name'] for p in student_client.get('/api/academic-periods').get_json()]
    assert names == ['Fall Term', 'Spring Term']

    bad = admin_client.post('/api/academic-periods', json={
        'name': 'Oops', 'type': 'TERM', 'start_date': '2025-02-01', 'end_date': '2025-01-01',
    })
    assert bad.status_code == 400
    assert student_client.post('/api/academic-periods', json={}).status_code == 403
    assert admin_client.delete(f"/api/academic-periods/{period['period_id']}").status_code == 200


def test_room_capacity_must_be_numeric(admin_client):
    response = admin_client.post('/api/rooms', json={'name': 'Room Q1', 'capacity': 'lots'})
    assert response.status_code == 400
    assert response.get_json() == {'error': 'capacity must be an integer'}

    room = admin_client.post('/api/rooms', json={'name': 'Room Q1', 'capacity': '18'}).get_json()
    assert room['capacity'] == 18
    assert admin_client.put(f"/api/rooms/{room['room_id']}", json={'capacity': 'x'}).status_code == 400


def test_time_slot_day_must_be_a_weekday(sample, admin_client):
    response = admin_client.post('/api/timeslots', json={
        'label': 'Weekend club', 'start_time': '12:00', 'end_time': '13:00', 'day_of_week': 'SATURDAY',
    })
    assert response.status_code == 400
    assert response.get_json()['error'].startswith('day_of_week must be one of')

    update = admin_client.put(f"/api/timeslots/{sample['slots'][0]}", json={'day_of_week': 'someday'})
    assert update.status_code == 400
    pinned = admin_client.put(f"/api/timeslots/{sample['slots'][0]}", json={'day_of_week': 'MONDAY'})
    assert pinned.get_json()['day_of_week'] == 'MONDAY'
