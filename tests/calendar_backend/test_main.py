import pytest
from fastapi.testclient import TestClient

from calendar_backend.main import create_app
from calendar_backend.models.notification import STATUS_SENT, EmailOutbox


@pytest.fixture
def app(mailer):
    return create_app(database_url='sqlite://', mailer=mailer, start_outbox_worker=False)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def test_root_reports_status(client) -> None:
    response = client.get('/')

    assert response.status_code == 200
    assert response.json() == {'status': 'Calendar API Running'}


def test_missing_date_is_a_client_error(client) -> None:
    response = client.get('/availability')

    assert response.status_code == 400
    assert response.json() == {'detail': 'Date is required.'}


def test_unparseable_date_is_a_client_error(client) -> None:
    response = client.get('/availability', params={'date': 'not-a-date'})

    assert response.status_code == 400


def test_default_booking_view(client) -> None:
    response = client.get('/availability', params={'date': '2024-01-01'})

    assert response.status_code == 200
    assert response.json() == {'availableTimes': ['09:00', '10:00', '11:00', '14:00', '15:00', '16:00']}


def test_admin_round_trip_of_posted_windows(client) -> None:
    windows = [{'from': '09:00', 'to': '11:00'}]

    posted = client.post('/availability', json={'date': '2024-05-06', 'timeSlots': windows})
    admin_view = client.get('/availability', params={'date': '2024-05-06', 'view': 'admin'})
    booking_view = client.get('/availability', params={'date': '2024-05-06'})

    assert posted.status_code == 200
    assert posted.json()['timeSlots'] == windows
    assert admin_view.json() == {'timeSlots': windows}
    assert booking_view.json() == {'availableTimes': ['09:00', '10:00']}


def test_post_availability_with_malformed_window_is_rejected(client) -> None:
    response = client.post('/availability', json={'date': '2024-05-06', 'timeSlots': [{'from': '9am', 'to': '11:00'}]})

    assert response.status_code == 400


def test_booking_flow_conflict_and_notification(app, client, mailer) -> None:
    payload = {'name': 'Ada', 'email': 'ada@example.com', 'date': '2024-01-01', 'time': '09:00'}

    created = client.post('/bookings', json=payload)
    duplicate = client.post('/bookings', json={**payload, 'name': 'Grace'})
    availability = client.get('/availability', params={'date': '2024-01-01'})
    bookings = client.get('/bookings')

    assert created.status_code == 201
    assert created.json()['booking']['time'] == '09:00'
    assert duplicate.status_code == 409
    assert '09:00' not in availability.json()['availableTimes']
    assert len(bookings.json()) == 1

    assert app.state.outbox_dispatcher.dispatch_pending() == 1
    assert len(mailer.sent) == 1

    db = app.state.session_factory()
    try:
        assert [email.status for email in db.query(EmailOutbox).all()] == [STATUS_SENT]
    finally:
        db.close()


def test_booking_with_missing_field_is_rejected(client) -> None:
    response = client.post('/bookings', json={'name': 'Ada', 'date': '2024-01-01', 'time': '09:00'})

    assert response.status_code == 400
    assert response.json() == {'detail': 'All fields are required.'}


def test_register_with_overlong_password_is_a_client_error(client) -> None:
    response = client.post(
        '/auth/register',
        json={'nome': 'Ada', 'cognome': 'Lovelace', 'email': 'ada@example.com', 'password': 'x' * 80},
    )

    assert response.status_code == 400
    assert response.json() == {'detail': 'Password must be at most 72 bytes.'}
