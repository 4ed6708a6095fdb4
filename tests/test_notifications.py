import smtplib

import pytest

import notifications
from notifications import NotificationService

SWAP = {
    'requester_email': 't1@school.test', 'requester_name': 'Alice Teacher',
    'target_email': 't2@school.test', 'target_name': 'Bob Teacher',
    'class_name': 'Grade 11', 'subject_name': 'Biology', 'day_of_week': 'MONDAY',
    'time_slot': '08:00 AM', 'room_name': 'Room A1',
}


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port
        self.logged_in = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        self.logged_in = user

    def sendmail(self, sender, recipients, message):
        FakeSMTP.sent.append((sender, recipients, message, self.logged_in))


@pytest.fixture
def smtp_app(app, monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(notifications.smtplib, 'SMTP', FakeSMTP)
    app.config.update(MAIL_SUPPRESS_SEND=False, MAIL_SERVER='smtp.school.test', MAIL_PORT=587,
                      MAIL_USERNAME='mailer', MAIL_PASSWORD='pw', MAIL_DEFAULT_SENDER='timetable@school.test')
    return app


def test_suppressed_mail_is_only_logged(app, caplog):
    with app.app_context(), caplog.at_level('INFO', logger='notifications'):
        result = NotificationService.send_swap_request(SWAP)
    assert result['success'] is True
    assert 'Timetable Swap Request - Grade 11' in caplog.text


def test_unconfigured_mail_reports_failure(app):
    app.config.update(MAIL_SUPPRESS_SEND=False, MAIL_SERVER='')
    with app.app_context():
        result = NotificationService.send_swap_confirmation(SWAP)
    assert result == {'success': False, 'error': 'Email service not configured'}


def test_swap_request_goes_to_target(smtp_app):
    with smtp_app.app_context():
        result = NotificationService.send_swap_request(SWAP)
    assert result == {'success': True, 'data': 't2@school.test'}
    sender, recipients, message, user = FakeSMTP.sent[0]
    assert sender == 'timetable@school.test'
    assert recipients == ['t2@school.test']
    assert user == 'mailer'
    assert 'Subject: Timetable Swap Request - Grade 11' in message


def test_timetable_change_subject_line(smtp_app):
    with smtp_app.app_context():
        NotificationService.send_timetable_change('t1@school.test', 'Alice Teacher', 'Grade 11 A', 'Biology',
                                                  'MONDAY', '08:00 AM', 'Room A1', 'swapped')
    assert 'Subject: Timetable Swapped - Grade 11 A' in FakeSMTP.sent[0][2]


def test_smtp_failure_is_returned_not_raised(app, monkeypatch):
    def broken(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, 'unavailable')

    monkeypatch.setattr(notifications.smtplib, 'SMTP', broken)
    app.config.update(MAIL_SUPPRESS_SEND=False, MAIL_SERVER='smtp.school.test')
    with app.app_context():
        result = NotificationService.send_email('t1@school.test', 'Hello', '<p>hi</p>')
    assert result['success'] is False
    assert 'unavailable' in result['error']
