"""
Configuration for the timetable manager.
Constants used across modules and environment-driven settings.
"""

import os
from datetime import timedelta

# --- ENVIRONMENT ---
DB_PATH = os.getenv('TIMETABLE_DB', 'timetable.db')
SECRET_KEY = os.getenv('SECRET_KEY', 'change-me-in-production')
ADMIN_EMAILS = [e.strip().lower() for e in os.getenv('ADMIN_EMAILS', '').split(',') if e.strip()]
ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD', 'admin123')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
SESSION_DAYS = int(os.getenv('SESSION_DAYS', '30'))

MAIL_SERVER = os.getenv('MAIL_SERVER', '')
MAIL_PORT = int(os.getenv('MAIL_PORT', '587'))
MAIL_USERNAME = os.getenv('MAIL_USERNAME', '')
MAIL_PASSWORD = os.getenv('MAIL_PASSWORD', '')
MAIL_DEFAULT_SENDER = os.getenv('MAIL_DEFAULT_SENDER', 'noreply@yourschool.com')
MAIL_SUPPRESS_SEND = os.getenv('MAIL_SUPPRESS_SEND', 'true').lower() in ('1', 'true', 'yes')


def default_config():
    return {
        'DATABASE': DB_PATH,
        'SECRET_KEY': SECRET_KEY,
        'ADMIN_EMAILS': ADMIN_EMAILS,
        'ADMIN_PASSWORD': ADMIN_PASSWORD,
        'LOG_LEVEL': LOG_LEVEL,
        'PERMANENT_SESSION_LIFETIME': timedelta(days=SESSION_DAYS),
        'MAIL_SERVER': MAIL_SERVER,
        'MAIL_PORT': MAIL_PORT,
        'MAIL_USERNAME': MAIL_USERNAME,
        'MAIL_PASSWORD': MAIL_PASSWORD,
        'MAIL_DEFAULT_SENDER': MAIL_DEFAULT_SENDER,
        'MAIL_SUPPRESS_SEND': MAIL_SUPPRESS_SEND,
    }


# --- DOMAIN CONSTANTS ---
DAYS = ['MONDAY', 'TUESDAY', 'WEDNESDAY', 'THURSDAY', 'FRIDAY']

ROLES = ['ADMIN', 'TEACHER', 'STUDENT']

SUBJECT_CATEGORIES = ['Individual', 'Societies', 'Sciences']
SUBJECT_COLORS = {
    'Individual': '#3B82F6',  # blue
    'Societies': '#10B981',   # green
    'Sciences': '#F59E0B',    # amber
}
DEFAULT_COLOR = '#6B7280'

CLASS_LEVELS = ['MYP', 'DP']
IB_LEVELS = ['SL', 'HL']
IB_GROUPS = [
    'LANGUAGES',
    'INDIVIDUALS_AND_SOCIETIES',
    'SCIENCES',
    'MATHEMATICS',
    'ARTS',
]

SWAP_STATUSES = ['PENDING', 'APPROVED', 'REJECTED', 'CANCELLED']
ACADEMIC_PERIOD_TYPES = ['TERM', 'HOLIDAY', 'EXAM', 'EVENT']

ROLE_HOME = {
    'ADMIN': '/admin/dashboard',
    'TEACHER': '/teacher/timetable',
    'STUDENT': '/student/timetable',
}


def subject_color(category):
    return SUBJECT_COLORS.get(category, DEFAULT_COLOR)
