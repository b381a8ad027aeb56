import smtplib
from unittest.mock import MagicMock, patch

import pytest

from marketplace.notifications.exceptions import EmailConfigurationException, EmailSendingException
from marketplace.notifications.smtp_sender import SmtpEmailSender


@pytest.fixture
def smtp_sender():
    return SmtpEmailSender(
        smtp_host="smtp.test.com",
        smtp_port=587,
        smtp_user="no-reply@test.com",
        smtp_password="test_password",
        default_sender="no-reply@test.com",
        use_tls=True,
        timeout=5.0,
    )


def mock_smtp_server(mock_smtp):
    server = MagicMock()
    mock_smtp.return_value.__enter__.return_value = server
    return server


@pytest.mark.asyncio
async def test_send_email_success(smtp_sender):
    with patch("smtplib.SMTP") as mock_smtp:
        server = mock_smtp_server(mock_smtp)

        result = await smtp_sender.send_email(
            recipient_email="buyer@example.com",
            subject="Sujet",
            html_content="<h1>Test</h1>",
        )

    assert result is True
    mock_smtp.assert_called_once_with("smtp.test.com", 587, timeout=5.0)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("no-reply@test.com", "test_password")
    server.sendmail.assert_called_once()
    assert server.sendmail.call_args[0][1] == ["buyer@example.com"]


@pytest.mark.asyncio
async def test_send_email_recipient_refused(smtp_sender):
    with patch("smtplib.SMTP") as mock_smtp:
        server = mock_smtp_server(mock_smtp)
        server.sendmail.side_effect = smtplib.SMTPRecipientsRefused({"buyer@example.com": (550, b"refused")})

        result = await smtp_sender.send_email("buyer@example.com", "Sujet", "<p>x</p>")

    assert result is False


@pytest.mark.asyncio
async def test_send_email_authentication_error(smtp_sender):
    with patch("smtplib.SMTP") as mock_smtp:
        server = mock_smtp_server(mock_smtp)
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

        with pytest.raises(EmailSendingException):
            await smtp_sender.send_email("buyer@example.com", "Sujet", "<p>x</p>")


@pytest.mark.asyncio
async def test_send_email_connection_error(smtp_sender):
    with patch("smtplib.SMTP", side_effect=ConnectionRefusedError("refusé")):
        with pytest.raises(EmailSendingException):
            await smtp_sender.send_email("buyer@example.com", "Sujet", "<p>x</p>")


@pytest.mark.asyncio
async def test_send_email_incomplete_configuration():
    sender = SmtpEmailSender(
        smtp_host="smtp.test.com",
        smtp_port=587,
        smtp_user="no-reply@test.com",
        smtp_password=None,
        default_sender="no-reply@test.com",
    )
    with pytest.raises(EmailConfigurationException):
        await sender.send_email("buyer@example.com", "Sujet", "<p>x</p>")
