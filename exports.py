import io
import re
import zipfile
from collections import defaultdict
from datetime import datetime

import pandas as pd
from fpdf import FPDF
from openpyxl.utils import get_column_letter

from config import DAYS

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

DETAILED_COLUMNS = {
    'Day': 12, 'Time': 15, 'Start_Time': 10, 'End_Time': 10, 'Duration_Hours': 12,
    'Subject': 20, 'Class': 15, 'Class_Level': 12, 'Room': 15, 'Room_Capacity': 12,
    'Teacher': 20, 'Teacher_Email': 25,
}
SIMPLE_COLUMNS = {'Day': 12, 'Time': 15, 'Class': 15, 'Subject': 25, 'Teacher': 20, 'Room': 15}

PDF_COLUMNS = [('Day', 30), ('Time', 30), ('Class', 40), ('Subject', 70), ('Teacher', 55), ('Room', 40)]


# --- HELPERS ---
def safe_filename(name):
    return re.sub(r'[^a-zA-Z0-9]', '_', name or 'timetable')


def dated_filename(prefix, ext):
    return f'{prefix}_{datetime.now().strftime("%Y-%m-%d")}.{ext}'


def duration_hours(start, end):
    try:
        fmt = '%H:%M'
        delta = datetime.strptime(end, fmt) - datetime.strptime(start, fmt)
        return delta.seconds / 3600
    except (TypeError, ValueError):
        return 1.0


def class_label(entry):
    return f"{entry['class_name']} {entry['section']}"


def simple_rows(entries):
    return [{
        'Day': e['day_of_week'],
        'Time': e['slot_label'],
        'Class': class_label(e),
        'Subject': e['subject_name'],
        'Teacher': e['teacher_name'],
        'Room': e['room_name'],
    } for e in entries]


def detailed_rows(entries):
    return [{
        'Day': e['day_of_week'],
        'Time': e['slot_label'],
        'Start_Time': e['start_time'],
        'End_Time': e['end_time'],
        'Duration_Hours': f"{duration_hours(e['start_time'], e['end_time']):.2f}",
        'Subject': e['subject_name'],
        'Class': class_label(e),
        'Class_Level': e['class_level'],
        'Room': e['room_name'],
        'Room_Capacity': e['room_capacity'],
        'Teacher': e['teacher_name'],
        'Teacher_Email': e['teacher_email'],
    } for e in entries]


def info_rows(fields):
    now = datetime.now()
    rows = [{'Field': k, 'Value': v} for k, v in fields]
    rows.append({'Field': 'Export Date', 'Value': now.strftime('%Y-%m-%d')})
    rows.append({'Field': 'Export Time', 'Value': now.strftime('%H:%M:%S')})
    return rows


# --- EXCEL / CSV ---
def to_excel(sheets):
    """Write ``[(sheet_name, rows, {column: width})]`` into an xlsx buffer."""
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        for name, rows, widths in sheets:
            df = pd.DataFrame(rows, columns=list(widths) if widths else None)
            df.to_excel(writer, sheet_name=name, index=False)
            ws = writer.sheets[name]
            for i, width in enumerate((widths or {}).values(), start=1):
                ws.column_dimensions[get_column_letter(i)].width = width
    output.seek(0)
    return output


def to_csv(rows, columns):
    output = io.BytesIO()
    pd.DataFrame(rows, columns=columns).to_csv(output, index=False, encoding='utf-8')
    output.seek(0)
    return output


def to_zip(members):
    """Bundle ``[(filename, buffer)]`` into one zip archive."""
    output = io.BytesIO()
    with zipfile.ZipFile(output, 'w', zipfile.ZIP_DEFLATED) as archive:
        for name, buffer in members:
            archive.writestr(name, buffer.getvalue())
    output.seek(0)
    return output


def school_workbook(entries):
    return to_excel([('Timetable', simple_rows(entries), SIMPLE_COLUMNS)])


def personal_workbook(entries, info_title, fields):
    return to_excel([
        ('Timetable', detailed_rows(entries), DETAILED_COLUMNS),
        (info_title, info_rows(fields), {'Field': 20, 'Value': 30}),
    ])


def summary_workbook(entries, fields):
    daily = defaultdict(lambda: {'classes': 0, 'hours': 0.0, 'subjects': [], 'teachers': []})
    by_subject = defaultdict(lambda: {'classes': 0, 'teachers': []})

    for e in entries:
        day = daily[e['day_of_week']]
        day['classes'] += 1
        day['hours'] += duration_hours(e['start_time'], e['end_time'])
        if e['subject_name'] not in day['subjects']:
            day['subjects'].append(e['subject_name'])
        if e['teacher_name'] not in day['teachers']:
            day['teachers'].append(e['teacher_name'])

        subj = by_subject[e['subject_name']]
        subj['classes'] += 1
        if e['teacher_name'] not in subj['teachers']:
            subj['teachers'].append(e['teacher_name'])

    summary = list(fields) + [
        ('Total Classes', len(entries)),
        ('Total Subjects', len({e['subject_name'] for e in entries})),
        ('Total Teachers', len({e['teacher_name'] for e in entries})),
        ('Total Hours', round(sum(d['hours'] for d in daily.values()), 2)),
    ]
    daily_rows = [{
        'Day': day,
        'Classes': daily[day]['classes'],
        'Hours': round(daily[day]['hours'], 2),
        'Subjects': ', '.join(daily[day]['subjects']),
        'Teachers': ', '.join(daily[day]['teachers']),
    } for day in DAYS if day in daily]
    subject_rows = [{
        'Subject': name,
        'Classes': stats['classes'],
        'Teachers': ', '.join(stats['teachers']),
    } for name, stats in by_subject.items()]

    return to_excel([
        ('Summary', info_rows(summary), {'Field': 25, 'Value': 30}),
        ('Daily Breakdown', daily_rows, {'Day': 15, 'Classes': 10, 'Hours': 10, 'Subjects': 30, 'Teachers': 30}),
        ('Subject Breakdown', subject_rows, {'Subject': 25, 'Classes': 10, 'Teachers': 30}),
    ])


# --- PDF ---
def _latin1(text):
    return str(text).encode('latin-1', 'replace').decode('latin-1')


def to_pdf(entries, title='School Timetable', subtitle=None):
    pdf = FPDF(orientation='L', unit='mm', format='A4')
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    pdf.set_font('Helvetica', 'B', 20)
    pdf.cell(0, 12, _latin1(title), align='C')
    pdf.ln(12)
    if subtitle:
        pdf.set_font('Helvetica', '', 11)
        pdf.cell(0, 8, _latin1(subtitle), align='C')
        pdf.ln(10)

    def header():
        pdf.set_font('Helvetica', 'B', 11)
        pdf.set_fill_color(242, 242, 242)
        for name, width in PDF_COLUMNS:
            pdf.cell(width, 8, name, border=1, fill=True)
        pdf.ln(8)
        pdf.set_font('Helvetica', '', 9)

    header()
    for row in simple_rows(entries):
        if pdf.get_y() > pdf.h - 25:
            pdf.add_page()
            header()
        for name, width in PDF_COLUMNS:
            pdf.cell(width, 7, _latin1(row[name])[:40], border=1)
        pdf.ln(7)

    if not entries:
        pdf.set_font('Helvetica', 'I', 10)
        pdf.cell(0, 8, 'No timetable entries found.')

    return io.BytesIO(bytes(pdf.output()))


# --- PRINT GRID ---
def print_grid(entries):
    """Group entries into (time slot label, day) cells for the printable page."""
    slots = []
    grid = defaultdict(list)
    for e in sorted(entries, key=lambda x: (x['start_time'], x['slot_label'])):
        if e['slot_label'] not in slots:
            slots.append(e['slot_label'])
        grid[(e['slot_label'], e['day_of_week'])].append(e)
    return slots, DAYS, grid
