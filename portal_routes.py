import logging

from flask import Blueprint, jsonify, render_template, request, send_file

from auth import can_student_view_class, current_user, load_user, role_required
from db import get_db
from errors import NotFoundError, PermissionDenied, ValidationError
from exports import (DETAILED_COLUMNS, XLSX_MIMETYPE, dated_filename, detailed_rows, personal_workbook,
                     print_grid, safe_filename, summary_workbook, to_csv, to_pdf, to_zip)
from timetable import get_timetable

logger = logging.getLogger(__name__)

portal_bp = Blueprint('portal_bp', __name__, url_prefix='/api')


def send_export(buffer, kind, filename):
    mimetypes = {'csv': 'text/csv', 'xlsx': XLSX_MIMETYPE, 'pdf': 'application/pdf', 'zip': 'application/zip'}
    return send_file(buffer, mimetype=mimetypes[kind], as_attachment=True, download_name=filename)


# --- TEACHER ---
def teacher_entries():
    user = current_user()
    teacher = user['teacher']
    requested = request.args.get('teacher_id', type=int)
    if requested and (teacher is None or requested != teacher['teacher_id']):
        raise PermissionDenied('You can only export your own timetable')
    if teacher is None:
        raise NotFoundError('Teacher profile not found')

    entries = get_timetable(teacher_id=teacher['teacher_id'])
    if not entries:
        raise NotFoundError('No timetable entries found for this teacher')
    return user, entries


def teacher_fields(user, entries):
    return [
        ('Teacher Name', user['name']),
        ('Email', user['email']),
        ('Total Classes', len(entries)),
        ('Total Subjects', len({e['subject_name'] for e in entries})),
    ]


@portal_bp.route('/teacher/timetable', methods=['GET'])
@role_required('TEACHER')
def teacher_timetable():
    teacher = current_user()['teacher']
    return jsonify(get_timetable(teacher_id=teacher['teacher_id']) if teacher else [])


@portal_bp.route('/teacher/export/csv', methods=['GET'])
@role_required('TEACHER')
def teacher_export_csv():
    user, entries = teacher_entries()
    filename = dated_filename(f"{safe_filename(user['name'])}_Timetable", 'csv')
    return send_export(to_csv(detailed_rows(entries), list(DETAILED_COLUMNS)), 'csv', filename)


@portal_bp.route('/teacher/export/excel', methods=['GET'])
@role_required('TEACHER')
def teacher_export_excel():
    user, entries = teacher_entries()
    buffer = personal_workbook(entries, 'Teacher Info', teacher_fields(user, entries))
    filename = dated_filename(f"{safe_filename(user['name'])}_Timetable", 'xlsx')
    return send_export(buffer, 'xlsx', filename)


@portal_bp.route('/teacher/export/pdf', methods=['GET'])
@role_required('TEACHER')
def teacher_export_pdf():
    user, entries = teacher_entries()
    buffer = to_pdf(entries, title=f"{user['name']} - Timetable", subtitle=user['email'])
    filename = dated_filename(f"{safe_filename(user['name'])}_Timetable", 'pdf')
    return send_export(buffer, 'pdf', filename)


@portal_bp.route('/teacher/export/summary', methods=['GET'])
@role_required('TEACHER')
def teacher_export_summary():
    user, entries = teacher_entries()
    buffer = summary_workbook(entries, [('Teacher Name', user['name']), ('Email', user['email'])])
    filename = dated_filename(f"{safe_filename(user['name'])}_Summary", 'xlsx')
    return send_export(buffer, 'xlsx', filename)


@portal_bp.route('/teacher/export/all', methods=['GET'])
@role_required('TEACHER')
def teacher_export_all():
    user, entries = teacher_entries()
    buffer = to_zip([
        ('Timetable_Excel.xlsx', personal_workbook(entries, 'Teacher Info', teacher_fields(user, entries))),
        ('Timetable_CSV.csv', to_csv(detailed_rows(entries), list(DETAILED_COLUMNS))),
        ('Weekly_Summary.xlsx', summary_workbook(entries, [('Teacher Name', user['name']),
                                                           ('Email', user['email'])])),
    ])
    filename = dated_filename(f"{safe_filename(user['name'])}_Complete_Timetable_Export", 'zip')
    return send_export(buffer, 'zip', filename)


@portal_bp.route('/teacher/print', methods=['GET'])
@role_required('TEACHER')
def teacher_print():
    user, entries = teacher_entries()
    slots, days, grid = print_grid(entries)
    return render_template('print.html', title=f"{user['name']} - Timetable", slots=slots, days=days, grid=grid)


# --- STUDENT ---
def student_class_id(user):
    if user['student'] is None:
        raise NotFoundError('Student profile not found')
    return user['student']['class_id']


def student_entries():
    user = current_user()
    class_id = student_class_id(user)
    requested = request.args.get('class_id', type=int)
    if requested and not can_student_view_class(user, requested):
        raise PermissionDenied('You can only export your own class timetable')

    entries = get_timetable(class_id=class_id)
    if not entries:
        raise NotFoundError('No timetable entries found for this class')
    return user, entries


def student_fields(user, entries):
    student = user['student']
    return [
        ('Student Name', user['name']),
        ('Email', user['email']),
        ('Class', f"{student['class_name']} {student['section']}"),
        ('Level', student['level']),
        ('Total Classes', len(entries)),
    ]


@portal_bp.route('/student/onboard', methods=['POST'])
@role_required('STUDENT')
def student_onboard():
    user = current_user()
    if user['student'] is not None:
        raise ValidationError('Student profile already exists')
    class_id = (request.get_json(silent=True) or {}).get('class_id')
    if not class_id:
        raise ValidationError('class_id is required')

    db = get_db()
    if db.execute('SELECT 1 FROM classes WHERE class_id = ?', (class_id,)).fetchone() is None:
        raise NotFoundError('Class not found')
    db.execute('INSERT INTO students (user_id, class_id) VALUES (?, ?)', (user['user_id'], class_id))
    db.commit()
    logger.info('Student %s joined class %s', user['email'], class_id)
    return jsonify({'success': True})


@portal_bp.route('/student/profile', methods=['PUT'])
@role_required('STUDENT')
def student_profile():
    user = current_user()
    data = request.get_json(silent=True) or {}
    full_name = data.get('full_name')
    if not isinstance(full_name, str) or not full_name.strip():
        raise ValidationError('Full name is required and must be a non-empty string')

    db = get_db()
    class_id = data.get('class_id')
    if class_id:
        if db.execute('SELECT 1 FROM classes WHERE class_id = ?', (class_id,)).fetchone() is None:
            raise NotFoundError('Class not found')
        student_class_id(user)
        db.execute('UPDATE students SET class_id = ? WHERE user_id = ?', (class_id, user['user_id']))
    db.execute('UPDATE users SET name = ? WHERE user_id = ?', (full_name.strip(), user['user_id']))
    db.commit()

    updated = load_user(user['user_id'])
    return jsonify({'success': True, 'message': 'Profile updated successfully', 'user': updated})


@portal_bp.route('/student/timetable-status', methods=['GET'])
@role_required('STUDENT')
def student_timetable_status():
    user = current_user()
    class_id = student_class_id(user)
    db = get_db()

    klass = db.execute('SELECT * FROM classes WHERE class_id = ?', (class_id,)).fetchone()
    subjects = db.execute('''
        SELECT s.subject_id, s.name, u.name AS teacher
        FROM subjects s
        JOIN teachers t ON s.teacher_id = t.teacher_id
        JOIN users u ON t.user_id = u.user_id
        WHERE s.class_id = ? ORDER BY s.name
    ''', (class_id,)).fetchall()
    entry_count = db.execute('SELECT COUNT(*) FROM timetable_entries WHERE class_id = ?', (class_id,)).fetchone()[0]

    if not subjects:
        status = 'no_subjects'
        message = 'No subjects assigned to this class'
        details = 'Please contact an administrator to assign subjects to your class.'
    elif not entry_count:
        status = 'no_timetable'
        message = 'No timetable generated for this class'
        details = 'Please contact an administrator to generate a timetable for your class.'
    else:
        status, message, details = 'ready', 'Timetable is ready for export', ''

    return jsonify({
        'status': status,
        'message': message,
        'details': details,
        'has_subjects': bool(subjects),
        'has_timetable': bool(entry_count),
        'subject_count': len(subjects),
        'timetable_entry_count': entry_count,
        'class': dict(klass),
        'subjects': [dict(s) for s in subjects],
    })


@portal_bp.route('/student/data', methods=['GET'])
@role_required('STUDENT')
def student_data():
    user = current_user()
    class_id = student_class_id(user)
    db = get_db()
    subjects = db.execute('SELECT COUNT(*) FROM subjects WHERE class_id = ?', (class_id,)).fetchone()[0]
    slots = db.execute('SELECT COUNT(*) FROM time_slots').fetchone()[0]
    student = user['student']
    return jsonify({
        'subjects': subjects,
        'classes_per_week': 5 * slots,
        'current_class': f"{student['class_name']}{student['section']}",
    })


@portal_bp.route('/student/timetable', methods=['GET'])
@role_required('STUDENT')
def student_timetable():
    return jsonify(get_timetable(class_id=student_class_id(current_user())))


@portal_bp.route('/student/export/csv', methods=['GET'])
@role_required('STUDENT')
def student_export_csv():
    user, entries = student_entries()
    filename = dated_filename(f"{safe_filename(user['name'])}_Timetable", 'csv')
    return send_export(to_csv(detailed_rows(entries), list(DETAILED_COLUMNS)), 'csv', filename)


@portal_bp.route('/student/export/excel', methods=['GET'])
@role_required('STUDENT')
def student_export_excel():
    user, entries = student_entries()
    buffer = personal_workbook(entries, 'Student Info', student_fields(user, entries))
    filename = dated_filename(f"{safe_filename(user['name'])}_Timetable", 'xlsx')
    return send_export(buffer, 'xlsx', filename)


@portal_bp.route('/student/export/pdf', methods=['GET'])
@role_required('STUDENT')
def student_export_pdf():
    user, entries = student_entries()
    student = user['student']
    buffer = to_pdf(entries, title=f"{student['class_name']} {student['section']} - Timetable",
                    subtitle=user['name'])
    filename = dated_filename(f"{safe_filename(user['name'])}_Timetable", 'pdf')
    return send_export(buffer, 'pdf', filename)


@portal_bp.route('/student/export/summary', methods=['GET'])
@role_required('STUDENT')
def student_export_summary():
    user, entries = student_entries()
    student = user['student']
    buffer = summary_workbook(entries, [('Class Name', student['class_name']), ('Section', student['section'])])
    filename = dated_filename(f"ClassSummary_{student['class_id']}", 'xlsx')
    return send_export(buffer, 'xlsx', filename)


@portal_bp.route('/student/export/all', methods=['GET'])
@role_required('STUDENT')
def student_export_all():
    user, entries = student_entries()
    student = user['student']
    buffer = to_zip([
        ('ClassTimetable_Excel.xlsx', personal_workbook(entries, 'Student Info', student_fields(user, entries))),
        ('ClassTimetable_CSV.csv', to_csv(detailed_rows(entries), list(DETAILED_COLUMNS))),
        ('ClassSummary.xlsx', summary_workbook(entries, [('Class Name', student['class_name']),
                                                         ('Section', student['section'])])),
    ])
    filename = dated_filename(f"ClassTimetable_Export_{student['class_id']}", 'zip')
    return send_export(buffer, 'zip', filename)


@portal_bp.route('/student/print', methods=['GET'])
@role_required('STUDENT')
def student_print():
    user, entries = student_entries()
    student = user['student']
    slots, days, grid = print_grid(entries)
    return render_template('print.html', title=f"{student['class_name']} {student['section']} - Timetable",
                           slots=slots, days=days, grid=grid)
