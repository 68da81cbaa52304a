"""Test helpers shared by the fixtures and the test modules."""

from io import BytesIO

from django.contrib.auth import get_user_model
from reportlab.pdfgen import canvas

from accounts.models import UserProfile
from documents.services.notifications import NotificationSink


CLIENT_ID = 10
OTHER_CLIENT_ID = 20


def make_pdf(pages=1, text='Contrato de prestação de serviços'):
    """Build a small real PDF with reportlab."""
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer)
    for number in range(pages):
        pdf.drawString(72, 720, f"{text} - página {number + 1}")
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def create_portal_user(username, role, client_ids=(), first_name='', last_name=''):
    user = get_user_model().objects.create_user(
        username=username,
        password='secret',
        first_name=first_name,
        last_name=last_name,
    )
    UserProfile.objects.create(user=user, role=role, client_ids=list(client_ids))
    return user


class RecordingSink(NotificationSink):
    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)


class FailingSink(NotificationSink):
    def publish(self, event):
        raise RuntimeError('sink is down')
