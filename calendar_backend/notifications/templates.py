from datetime import date
from email.message import EmailMessage
from html import escape

BOOKING_CONFIRMATION_SUBJECT = 'Appointment confirmed'

_TEXT_TEMPLATE = """Dear customer,

Your appointment has been confirmed for {day} at {time}.

This message was sent automatically by the booking calendar.

Kind regards,
The booking team"""


def render_booking_confirmation(booking_date: date, booking_time: str) -> str:
    return _TEXT_TEMPLATE.format(day=booking_date.strftime('%d/%m/%Y'), time=booking_time)


def build_message(
    *,
    sender: str,
    recipient: str,
    subject: str,
    body: str,
    signature_image_url: str = '',
) -> EmailMessage:
    msg = EmailMessage()
    msg['From'] = sender
    msg['To'] = recipient
    msg['Subject'] = subject
    msg.set_content(body)

    html_body = '<br>'.join(escape(line) for line in body.splitlines())
    if signature_image_url:
        html_body += f'<br><br><img src="{escape(signature_image_url)}" alt="signature">'
    msg.add_alternative(f'<html><body><p>{html_body}</p></body></html>', subtype='html')

    return msg
