import logging
import sqlite3

from flask import Flask, flash, jsonify, redirect, render_template, request, url_for
from werkzeug.exceptions import HTTPException

import db
import seed
from admin_routes import admin_bp
from auth import (accessible_data, authenticate, current_user, login_required, login_user, logout_user,
                  register_user, role_redirect, role_required)
from config import DAYS, default_config
from errors import TimetableError, ValidationError
from exports import print_grid
from portal_routes import portal_bp
from timetable import get_timetable, timetable_stats
from timetable_routes import timetable_bp

logger = logging.getLogger(__name__)


def configure_logging(level):
    logging.basicConfig(level=level, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_mapping(default_config())
    if test_config is not None:
        app.config.from_mapping(test_config)
    app.secret_key = app.config['SECRET_KEY']
    configure_logging(app.config['LOG_LEVEL'])

    db.init_app(app)
    seed.init_app(app)
    app.register_blueprint(admin_bp)
    app.register_blueprint(timetable_bp)
    app.register_blueprint(portal_bp)
    register_error_handlers(app)
    register_pages(app)
    return app


# --- ERROR HANDLERS ---
def register_error_handlers(app):

    @app.errorhandler(TimetableError)
    def handle_timetable_error(e):
        if e.status_code >= 500:
            logger.error('%s %s: %s', request.method, request.path, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(sqlite3.IntegrityError)
    def handle_integrity_error(e):
        logger.warning('Integrity error on %s %s: %s', request.method, request.path, e)
        return jsonify({'error': 'Conflict with existing data', 'details': str(e)}), 409

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception('Unhandled error on %s %s', request.method, request.path)
        return jsonify({'error': f'{request.method} {request.path} failed'}), 500


# --- PAGES ---
def register_pages(app):

    @app.route('/')
    def index():
        user = current_user()
        if user is None:
            return redirect(url_for('login'))
        return redirect(role_redirect(user))

    @app.route('/login', methods=['GET', 'POST'])
    def login():
        if current_user() is not None:
            return redirect(role_redirect(current_user()))

        if request.method == 'POST':
            user = authenticate(request.form.get('email'), request.form.get('password'))
            if user is not None:
                login_user(user, remember='remember' in request.form)
                return redirect(role_redirect(user))
            flash('Invalid email or password.', 'danger')

        return render_template('login.html')

    @app.route('/register', methods=['GET', 'POST'])
    def register():
        if request.method == 'POST':
            try:
                user = register_user(request.form.get('email'), request.form.get('name'),
                                     request.form.get('password'))
            except TimetableError as e:
                flash(e.message, 'danger')
            else:
                login_user(user)
                flash('Account created successfully!', 'success')
                return redirect(role_redirect(user))
        return render_template('register.html')

    @app.route('/logout')
    def logout():
        logout_user()
        flash('You have been successfully logged out.', 'success')
        return redirect(url_for('login'))

    @app.route('/admin/dashboard')
    @role_required('ADMIN')
    def admin_dashboard():
        entries = get_timetable()
        slots, days, grid = print_grid(entries)
        return render_template('timetable.html', title='Admin Dashboard', stats=timetable_stats(),
                               slots=slots, days=days, grid=grid)

    @app.route('/teacher/timetable')
    @role_required('TEACHER')
    def teacher_page():
        teacher = current_user()['teacher']
        entries = get_timetable(teacher_id=teacher['teacher_id']) if teacher else []
        slots, days, grid = print_grid(entries)
        return render_template('timetable.html', title='My Timetable', slots=slots, days=days, grid=grid)

    @app.route('/student/timetable')
    @role_required('STUDENT')
    def student_page():
        student = current_user()['student']
        if student is None:
            classes = db.get_db().execute('SELECT * FROM classes ORDER BY name, section').fetchall()
            return render_template('timetable.html', title='Choose your class', classes=classes,
                                   slots=[], days=DAYS, grid={})
        slots, days, grid = print_grid(get_timetable(class_id=student['class_id']))
        return render_template('timetable.html', title=f"{student['class_name']} {student['section']}",
                               slots=slots, days=days, grid=grid)

    # --- AUTH API ---
    @app.route('/api/auth/login', methods=['POST'])
    def api_login():
        data = request.get_json(silent=True) or {}
        if not data.get('email') or not data.get('password'):
            raise ValidationError('Email and password are required')
        user = authenticate(data['email'], data['password'])
        if user is None:
            return jsonify({'error': 'Invalid email or password'}), 401
        login_user(user, remember=bool(data.get('remember')))
        return jsonify({'success': True, 'role': user['role'], 'redirect': role_redirect(user)})

    @app.route('/api/auth/logout', methods=['POST'])
    def api_logout():
        logout_user()
        return jsonify({'success': True})

    @app.route('/api/auth/me')
    def api_me():
        user = current_user()
        if user is None:
            return jsonify({'role': None})
        return jsonify({
            'user_id': user['user_id'],
            'email': user['email'],
            'name': user['name'],
            'role': user['role'],
            'permissions': accessible_data(user),
        })

    @app.route('/api/auth/permissions')
    @login_required
    def api_permissions():
        return jsonify(accessible_data(current_user()))


app = create_app()

if __name__ == '__main__':
    with app.app_context():
        db.init_db()
    app.run(debug=True)
