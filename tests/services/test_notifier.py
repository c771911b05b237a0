import smtplib

import pytest

from medsched.services import notifier as notifier_module
from medsched.services.notifier import LoggingNotifier, Notifier, SmtpNotifier, get_notifier, notify


class FakeSMTP:
    instances: list['FakeSMTP'] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in_as = None
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, username, password):
        self.logged_in_as = username

    def sendmail(self, from_addr, to_addrs, message):
        self.sent.append((from_addr, to_addrs, message))


def test_smtp_notifier_sends_plain_text_email(monkeypatch) -> None:
    FakeSMTP.instances = []
    monkeypatch.setattr(notifier_module.smtplib, 'SMTP', FakeSMTP)

    SmtpNotifier('smtp.example.com', 587, username='mailer', password='secret', from_email='clinic@example.com').send(
        'ada@example.com',
        'Appointment confirmed',
        'See you soon.',
    )

    server = FakeSMTP.instances[0]
    from_addr, to_addrs, message = server.sent[0]
    assert (server.host, server.port) == ('smtp.example.com', 587)
    assert server.started_tls is True
    assert server.logged_in_as == 'mailer'
    assert from_addr == 'clinic@example.com'
    assert to_addrs == ['ada@example.com']
    assert 'Subject: Appointment confirmed' in message


def test_smtp_notifier_skips_login_without_credentials(monkeypatch) -> None:
    FakeSMTP.instances = []
    monkeypatch.setattr(notifier_module.smtplib, 'SMTP', FakeSMTP)

    SmtpNotifier('localhost', 25, use_tls=False).send('ada@example.com', 'Hello', 'Body')

    server = FakeSMTP.instances[0]
    assert server.started_tls is False
    assert server.logged_in_as is None


def test_notify_logs_delivery_failures(caplog) -> None:
    class FailingNotifier(LoggingNotifier):
        def send(self, recipient, subject, body):
            raise smtplib.SMTPServerDisconnected('gone')

    notify(FailingNotifier(), 'ada@example.com', 'Hello', 'Body')

    assert 'Failed to deliver notification to ada@example.com' in caplog.text


def test_notify_skips_missing_recipient() -> None:
    class ExplodingNotifier(LoggingNotifier):
        def send(self, recipient, subject, body):
            raise AssertionError('should not be called')

    notify(ExplodingNotifier(), None, 'Hello', 'Body')


def test_get_notifier_picks_smtp_when_configured(monkeypatch) -> None:
    monkeypatch.setattr(notifier_module.config, 'SMTP_HOST', '')
    assert isinstance(get_notifier(), LoggingNotifier)

    monkeypatch.setattr(notifier_module.config, 'SMTP_HOST', 'smtp.example.com')
    smtp = get_notifier()
    assert isinstance(smtp, SmtpNotifier)
    assert smtp.host == 'smtp.example.com'


def test_notify_logs_unexpected_provider_errors(caplog) -> None:
    class ProviderDown(LoggingNotifier):
        def send(self, recipient, subject, body):
            raise RuntimeError('provider down')

    notify(ProviderDown(), 'ada@example.com', 'Hello', 'Body')

    assert 'Failed to deliver notification to ada@example.com' in caplog.text
    assert 'provider down' in caplog.text


def test_notifier_base_class_cannot_be_instantiated() -> None:
    with pytest.raises(TypeError):
        Notifier()
