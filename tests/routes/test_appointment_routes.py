from datetime import datetime

import pytest
from pydantic import ValidationError

from medsched.routes.appointment_routes import CreateAppointmentRequest, UpdateAppointmentRequest

PASSWORD = 'correct-horse'


def _login(client, email: str, role: str = 'patient') -> dict:
    response = client.post(
        '/api/v1/auth/register',
        json={'name': email.split('@')[0].title(), 'email': email, 'password': PASSWORD, 'role': role},
    )
    assert response.status_code == 201
    response = client.post('/api/v1/auth/login', json={'email': email, 'password': PASSWORD})
    assert response.status_code == 200
    return {'Authorization': f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def clinic(client):
    doctor_headers = _login(client, 'doctor@example.com', role='doctor')
    doctor = client.post('/api/v1/doctors', json={'specialty': 'Cardiology'}, headers=doctor_headers).json()

    patient_headers = _login(client, 'patient@example.com')
    patient = client.post('/api/v1/patients', json={'gender': 'female'}, headers=patient_headers).json()

    return {
        'doctor_id': doctor['id'],
        'doctor_headers': doctor_headers,
        'patient_id': patient['id'],
        'patient_headers': patient_headers,
    }


def _book(client, clinic, start: str = '2030-01-07T10:00:00', **extra):
    payload = {
        'patient_id': clinic['patient_id'],
        'doctor_id': clinic['doctor_id'],
        'scheduled_start': start,
        **extra,
    }
    return client.post('/api/v1/appointments', json=payload, headers=clinic['patient_headers'])


def test_create_appointment_request_normalizes_type_and_timezone() -> None:
    request = CreateAppointmentRequest(
        patient_id=1,
        doctor_id=2,
        scheduled_start='2030-01-07T11:00:00+01:00',
        type=' VIDEO ',
        reason='  Annual check-up  ',
    )

    assert request.scheduled_start == datetime(2030, 1, 7, 10, 0)
    assert request.scheduled_start.tzinfo is None
    assert request.type == 'video'
    assert request.reason == 'Annual check-up'


def test_create_appointment_request_rejects_unknown_type() -> None:
    with pytest.raises(ValidationError):
        CreateAppointmentRequest(patient_id=1, doctor_id=2, scheduled_start='2030-01-07T10:00:00', type='carrier pigeon')


def test_update_appointment_request_rejects_unknown_status() -> None:
    with pytest.raises(ValidationError):
        UpdateAppointmentRequest(status='postponed')


def test_health_check(client) -> None:
    response = client.get('/api/health')

    assert response.status_code == 200
    assert response.json() == {'status': 'ok'}


def test_book_appointment(client, clinic, notifier) -> None:
    response = _book(client, clinic, reason='Chest pain', type='phone')

    assert response.status_code == 201
    body = response.json()
    assert body['status'] == 'pending'
    assert body['type'] == 'phone'
    assert body['scheduled_start'] == '2030-01-07T10:00:00'
    assert body['scheduled_end'] == '2030-01-07T10:30:00'
    assert body['doctor_name'] == 'Doctor'
    assert body['patient_name'] == 'Patient'
    assert 'Appointment requested' in notifier.subjects_for('doctor@example.com')


def test_book_overlapping_appointment_returns_conflict(client, clinic) -> None:
    assert _book(client, clinic).status_code == 201

    response = _book(client, clinic, start='2030-01-07T10:15:00')

    assert response.status_code == 409
    assert response.json() == {'error': 'Appointment time conflicts with an existing appointment.'}


def test_book_in_the_past_returns_bad_request(client, clinic) -> None:
    response = _book(client, clinic, start='2030-01-07T08:00:00')

    assert response.status_code == 400
    assert response.json() == {'error': 'Appointment cannot be scheduled in the past.'}


def test_book_with_invalid_payload_returns_bad_request(client, clinic) -> None:
    response = _book(client, clinic, type='carrier pigeon')

    assert response.status_code == 400
    assert response.json()['error'].startswith('Invalid request: type')


def test_book_requires_authentication(client, clinic) -> None:
    response = client.post(
        '/api/v1/appointments',
        json={'patient_id': clinic['patient_id'], 'doctor_id': clinic['doctor_id'], 'scheduled_start': '2030-01-07T10:00:00'},
    )

    assert response.status_code == 401
    assert response.json() == {'error': 'Authorization header required'}


def test_book_for_unknown_doctor_returns_not_found(client, clinic) -> None:
    response = client.post(
        '/api/v1/appointments',
        json={'patient_id': clinic['patient_id'], 'doctor_id': 999, 'scheduled_start': '2030-01-07T10:00:00'},
        headers=clinic['patient_headers'],
    )

    assert response.status_code == 404
    assert response.json() == {'error': 'Doctor not found.'}


def test_other_patient_cannot_view_appointment(client, clinic) -> None:
    appointment_id = _book(client, clinic).json()['id']
    stranger_headers = _login(client, 'stranger@example.com')

    response = client.get(f'/api/v1/appointments/{appointment_id}', headers=stranger_headers)

    assert response.status_code == 403


def test_participants_can_view_appointment(client, clinic) -> None:
    appointment_id = _book(client, clinic).json()['id']

    for headers in (clinic['patient_headers'], clinic['doctor_headers']):
        response = client.get(f'/api/v1/appointments/{appointment_id}', headers=headers)
        assert response.status_code == 200
        assert response.json()['id'] == appointment_id


def test_doctor_confirms_and_completes_appointment(client, clinic) -> None:
    # Booked for exactly now so it can be completed straight away.
    appointment_id = _book(client, clinic, start='2030-01-07T09:00:00').json()['id']

    confirm = client.post(f'/api/v1/appointments/{appointment_id}/confirm', headers=clinic['doctor_headers'])
    complete = client.post(
        f'/api/v1/appointments/{appointment_id}/complete',
        json={'notes': 'Prescribed rest.'},
        headers=clinic['doctor_headers'],
    )

    assert confirm.status_code == 200
    assert confirm.json()['status'] == 'confirmed'
    assert complete.status_code == 200
    assert complete.json()['status'] == 'completed'
    assert complete.json()['notes'] == 'Prescribed rest.'


def test_patient_cannot_confirm(client, clinic) -> None:
    appointment_id = _book(client, clinic).json()['id']

    response = client.post(f'/api/v1/appointments/{appointment_id}/confirm', headers=clinic['patient_headers'])

    assert response.status_code == 403


def test_complete_before_start_is_rejected(client, clinic) -> None:
    appointment_id = _book(client, clinic).json()['id']

    response = client.post(f'/api/v1/appointments/{appointment_id}/complete', headers=clinic['doctor_headers'])

    assert response.status_code == 400
    assert response.json() == {'error': 'Cannot complete an appointment before its scheduled time.'}


def test_cancel_inside_notice_window_is_rejected(client, clinic) -> None:
    appointment_id = _book(client, clinic, start='2030-01-07T09:30:00').json()['id']

    response = client.post(f'/api/v1/appointments/{appointment_id}/cancel', headers=clinic['patient_headers'])

    assert response.status_code == 400
    assert response.json() == {
        'error': 'Appointment cannot be cancelled less than 1 hour before the scheduled time.'
    }


def test_cancel_frees_the_slot(client, clinic) -> None:
    appointment_id = _book(client, clinic).json()['id']

    cancel = client.post(f'/api/v1/appointments/{appointment_id}/cancel', headers=clinic['patient_headers'])
    rebook = _book(client, clinic)

    assert cancel.status_code == 200
    assert cancel.json()['status'] == 'cancelled'
    assert rebook.status_code == 201


def test_cancelled_appointment_cannot_be_updated(client, clinic) -> None:
    appointment_id = _book(client, clinic).json()['id']
    client.post(f'/api/v1/appointments/{appointment_id}/cancel', headers=clinic['patient_headers'])

    response = client.put(
        f'/api/v1/appointments/{appointment_id}',
        json={'reason': 'Changed my mind'},
        headers=clinic['patient_headers'],
    )

    assert response.status_code == 400
    assert response.json() == {'error': 'Cannot modify a cancelled appointment.'}


def test_reschedule_appointment(client, clinic, notifier) -> None:
    appointment_id = _book(client, clinic).json()['id']

    response = client.put(
        f'/api/v1/appointments/{appointment_id}',
        json={'scheduled_start': '2030-01-08T14:00:00', 'notes': 'Moved to Tuesday'},
        headers=clinic['patient_headers'],
    )

    assert response.status_code == 200
    body = response.json()
    assert body['scheduled_start'] == '2030-01-08T14:00:00'
    assert body['scheduled_end'] == '2030-01-08T14:30:00'
    assert body['notes'] == 'Moved to Tuesday'
    assert 'Appointment rescheduled' in notifier.subjects_for('patient@example.com')


def test_reschedule_into_taken_slot_returns_conflict(client, clinic) -> None:
    _book(client, clinic)
    second_id = _book(client, clinic, start='2030-01-07T11:00:00').json()['id']

    response = client.put(
        f'/api/v1/appointments/{second_id}',
        json={'scheduled_start': '2030-01-07T10:10:00'},
        headers=clinic['patient_headers'],
    )

    assert response.status_code == 409


def test_no_show_before_start_is_rejected(client, clinic) -> None:
    appointment_id = _book(client, clinic).json()['id']

    response = client.post(f'/api/v1/appointments/{appointment_id}/no-show', headers=clinic['doctor_headers'])

    assert response.status_code == 400


def test_unknown_appointment_returns_not_found(client, clinic) -> None:
    response = client.get('/api/v1/appointments/999', headers=clinic['patient_headers'])

    assert response.status_code == 404
    assert response.json() == {'error': 'Appointment not found.'}


def test_doctor_schedule_lists_booked_slots(client, clinic) -> None:
    _book(client, clinic)
    _book(client, clinic, start='2030-01-09T10:00:00')

    response = client.get(
        f"/api/v1/doctors/{clinic['doctor_id']}/schedule",
        params={'start_date': '2030-01-07', 'end_date': '2030-01-07'},
        headers=clinic['patient_headers'],
    )

    assert response.status_code == 200
    body = response.json()
    assert body['total_count'] == 1
    assert body['page'] == 1
    assert body['page_size'] == 10
    assert body['items'][0]['scheduled_start'] == '2030-01-07T10:00:00'


def test_patient_appointments_listing(client, clinic) -> None:
    _book(client, clinic)
    _book(client, clinic, start='2030-01-08T10:00:00')

    response = client.get(
        f"/api/v1/patients/{clinic['patient_id']}/appointments",
        params={'page_size': 1},
        headers=clinic['patient_headers'],
    )

    assert response.status_code == 200
    body = response.json()
    assert body['total_count'] == 2
    assert [item['scheduled_start'] for item in body['items']] == ['2030-01-08T10:00:00']


def test_page_size_above_limit_is_rejected(client, clinic) -> None:
    response = client.get(
        f"/api/v1/patients/{clinic['patient_id']}/appointments",
        params={'page_size': 500},
        headers=clinic['patient_headers'],
    )

    assert response.status_code == 400
