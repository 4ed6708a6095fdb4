import logging

from flask import Blueprint, jsonify, render_template, request, send_file

from auth import current_user, login_required, role_required
from errors import GenerationError
from exports import XLSX_MIMETYPE, print_grid, school_workbook, to_pdf
from swaps import create_swap_request, list_swap_requests, notify_swapped, update_swap_request
from timetable import assign_subjects, direct_swap, generate_timetable, get_timetable, week_timetable

logger = logging.getLogger(__name__)

timetable_bp = Blueprint('timetable_bp', __name__, url_prefix='/api')


def timetable_filters(user):
    """Restrict the query filters to what the current user may see."""
    args = request.args
    if user['role'] == 'ADMIN':
        return {
            'class_id': args.get('class_id', type=int),
            'teacher_id': args.get('teacher_id', type=int),
            'student_id': args.get('student_id', type=int),
            'curriculum': args.get('curriculum'),
            'section': args.get('section'),
        }
    if user['role'] == 'TEACHER' and user['teacher']:
        return {'teacher_id': user['teacher']['teacher_id']}
    if user['role'] == 'STUDENT' and user['student']:
        return {'class_id': user['student']['class_id']}
    return None


# --- TIMETABLE ---
@timetable_bp.route('/timetable', methods=['GET'])
@login_required
def api_get_timetable():
    filters = timetable_filters(current_user())
    if filters is None:
        return jsonify([])
    return jsonify(get_timetable(**filters))


@timetable_bp.route('/timetable/week', methods=['GET'])
@login_required
def api_week_timetable():
    filters = timetable_filters(current_user())
    data = week_timetable(request.args.get('week_start'), **(filters or {}))
    if filters is None:
        data['timetable'] = []
    return jsonify(data)


@timetable_bp.route('/generate', methods=['POST'])
@role_required('ADMIN')
def api_generate():
    data = request.get_json(silent=True) or {}
    try:
        result = generate_timetable(class_id=data.get('class_id'), teacher_id=data.get('teacher_id'))
    except GenerationError as e:
        logger.error('Timetable generation failed: %s', e.message)
        return jsonify({'error': 'Failed to generate timetable', 'details': e.message}), 500
    return jsonify(result)


@timetable_bp.route('/timetable/assign', methods=['POST'])
@role_required('ADMIN')
def api_assign():
    data = request.get_json(silent=True) or {}
    entries = assign_subjects(data.get('slot_id'), data.get('day_of_week'),
                              data.get('subject_ids'), data.get('room_id'))
    return jsonify({'success': True, 'entries': entries})


@timetable_bp.route('/timetable/direct-swap', methods=['POST'])
@role_required('ADMIN')
def api_direct_swap():
    data = request.get_json(silent=True) or {}
    result = direct_swap(data.get('from_id'), data.get('to_id'))
    notify_swapped(result['from_entry'], result['to_entry'])
    return jsonify({'success': True, **result})


# --- SWAP REQUESTS ---
@timetable_bp.route('/timetable/swap', methods=['GET'])
@login_required
def api_list_swaps():
    return jsonify(list_swap_requests(current_user(), request.args.get('status'), request.args.get('type')))


@timetable_bp.route('/timetable/swap', methods=['POST'])
@login_required
def api_create_swap():
    data = request.get_json(silent=True) or {}
    swap = create_swap_request(current_user(), data.get('from_entry_id'), data.get('to_entry_id'),
                               data.get('reason'))
    return jsonify(swap), 201


@timetable_bp.route('/timetable/swap', methods=['PUT'])
@login_required
def api_update_swap():
    data = request.get_json(silent=True) or {}
    swap = update_swap_request(current_user(), data.get('request_id'), data.get('status'),
                               data.get('admin_notes'))
    return jsonify(swap)


# --- EXPORTS ---
@timetable_bp.route('/export', methods=['GET'])
@role_required('ADMIN')
def api_export_excel():
    buffer = school_workbook(get_timetable())
    return send_file(buffer, mimetype=XLSX_MIMETYPE, as_attachment=True, download_name='timetable.xlsx')


@timetable_bp.route('/export/pdf', methods=['GET'])
@role_required('ADMIN')
def api_export_pdf():
    buffer = to_pdf(get_timetable())
    return send_file(buffer, mimetype='application/pdf', as_attachment=True, download_name='timetable.pdf')


@timetable_bp.route('/print', methods=['GET'])
@role_required('ADMIN')
def api_print():
    slots, days, grid = print_grid(get_timetable())
    return render_template('print.html', title='School Timetable', slots=slots, days=days, grid=grid)
