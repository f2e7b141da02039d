from types import SimpleNamespace

from backend.app.services.email_service import EmailService


def test_send_is_simulated_without_smtp(caplog):
    settings = SimpleNamespace(smtp_configured=False, frontend_url="http://localhost:3000")
    service = EmailService(settings=settings)

    with caplog.at_level("WARNING"):
        assert service.send("ana@example.com", "Hola", "<p>Hola</p>") is False
    assert "Email simulation" in caplog.text


def test_password_reset_link_carries_token():
    sent = []

    class Capturing(EmailService):
        def send(self, to, subject, html_body, text_body=None):
            sent.append((to, html_body))
            return True

    service = Capturing(settings=SimpleNamespace(smtp_configured=True, frontend_url="https://app.test"))
    assert service.send_password_reset("ana@example.com", "Ana", "tok123")
    assert sent[0][0] == "ana@example.com"
    assert "https://app.test/reset-password?token=tok123" in sent[0][1]
