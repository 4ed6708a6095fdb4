import logging
import smtplib
from email.mime.text import MIMEText

from flask import current_app

logger = logging.getLogger(__name__)

CARD = '''
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: {color};">{heading}</h2>
  <p>Hello {greeting},</p>
  <p>{intro}</p>
  <div style="background: #f8fafc; padding: 20px; border-radius: 8px; margin: 20px 0;">
    <p><strong>Class:</strong> {class_name}</p>
    <p><strong>Subject:</strong> {subject_name}</p>
    <p><strong>Day:</strong> {day_of_week}</p>
    <p><strong>Time:</strong> {time_slot}</p>
    <p><strong>Room:</strong> {room_name}</p>
  </div>
  <p>{outro}</p>
  <p>Best regards,<br>TimeTable Generator Team</p>
</div>
'''


class NotificationService:

    @staticmethod
    def send_timetable_change(teacher_email, teacher_name, class_name, subject_name,
                              day_of_week, time_slot, room_name, change_type):
        html = CARD.format(
            color='#1e40af', heading='Timetable Update', greeting=teacher_name,
            intro=f'A timetable entry has been <strong>{change_type}</strong> for your class:',
            class_name=class_name, subject_name=subject_name, day_of_week=day_of_week,
            time_slot=time_slot, room_name=room_name,
            outro='Please log in to your timetable dashboard to view the changes.',
        )
        return NotificationService.send_email(
            teacher_email, f'Timetable {change_type.capitalize()} - {class_name}', html)

    @staticmethod
    def send_swap_request(swap):
        html = CARD.format(
            color='#dc2626', heading='Timetable Swap Request', greeting=swap['target_name'],
            intro=f"{swap['requester_name']} has requested to swap a timetable slot with you:",
            class_name=swap['class_name'], subject_name=swap['subject_name'],
            day_of_week=swap['day_of_week'], time_slot=swap['time_slot'], room_name=swap['room_name'],
            outro='Please log in to your timetable dashboard to approve or reject this request.',
        )
        return NotificationService.send_email(
            swap['target_email'], f"Timetable Swap Request - {swap['class_name']}", html)

    @staticmethod
    def send_swap_confirmation(swap):
        html = CARD.format(
            color='#059669', heading='Swap Request Confirmation', greeting=swap['requester_name'],
            intro=f"Your timetable swap request has been sent to {swap['target_name']}.",
            class_name=swap['class_name'], subject_name=swap['subject_name'],
            day_of_week=swap['day_of_week'], time_slot=swap['time_slot'], room_name=swap['room_name'],
            outro=f"You will be notified once {swap['target_name']} responds to your request.",
        )
        return NotificationService.send_email(
            swap['requester_email'], f"Swap Request Sent - {swap['class_name']}", html)

    @staticmethod
    def send_email(to, subject, html):
        config = current_app.config
        sender = config.get('MAIL_DEFAULT_SENDER') or 'noreply@yourschool.com'

        if config.get('MAIL_SUPPRESS_SEND'):
            logger.info('Email notification to %s: %s', to, subject)
            logger.debug('Content: %s', html)
            return {'success': True, 'data': 'Logged (mail sending suppressed)'}

        if not config.get('MAIL_SERVER'):
            logger.warning('Email service not configured, skipping email notification')
            return {'success': False, 'error': 'Email service not configured'}

        msg = MIMEText(html, 'html')
        msg['Subject'] = subject
        msg['From'] = sender
        msg['To'] = to

        try:
            with smtplib.SMTP(config['MAIL_SERVER'], config.get('MAIL_PORT', 587), timeout=15) as server:
                server.starttls()
                if config.get('MAIL_USERNAME'):
                    server.login(config['MAIL_USERNAME'], config.get('MAIL_PASSWORD', ''))
                server.sendmail(sender, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error('Failed to send email notification to %s: %s', to, e)
            return {'success': False, 'error': str(e)}

        return {'success': True, 'data': to}
