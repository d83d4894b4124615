import logging

import requests

logger = logging.getLogger(__name__)

RESET_SUBJECT = "ToGo - Password reset code"

RESET_TEXT = """ToGo - Password reset

Hi, {username}!

You asked to reset your ToGo password.
Use the code below to choose a new password:

Code: {code}

This code is valid for {minutes} minutes and can be used only once.

If you did not request this, ignore this email.
"""

RESET_HTML = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="color: #22c55e; text-align: center;">ToGo</h1>
  <p>Hi, <strong>{username}</strong>!</p>
  <p>You asked to reset your ToGo password. Use the code below to choose a new password:</p>
  <p style="text-align: center; font-size: 32px; font-weight: bold; letter-spacing: 5px;">{code}</p>
  <p>This code is valid for <strong>{minutes} minutes</strong> and can be used only once.</p>
  <p>If you did not request this, ignore this email.</p>
</div>
"""


class MailerSendClient:
    """Sends transactional email through the MailerSend REST API."""

    def __init__(self, api_key, sender_email, sender_name="ToGo", timeout=10):
        self.api_key = api_key
        self.base_url = "https://api.mailersend.com/v1/email"
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.timeout = timeout

    @property
    def enabled(self):
        return bool(self.api_key)

    def send(self, to_email, to_name, subject, text, html=None):
        if not self.enabled:
            logger.warning("MailerSend API key not configured; email to %s not sent", to_email)
            return False

        payload = {
            "from": {"email": self.sender_email, "name": self.sender_name},
            "to": [{"email": to_email, "name": to_name}],
            "subject": subject,
            "text": text,
        }
        if html:
            payload["html"] = html

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = requests.post(
                self.base_url, json=payload, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            return True
        except requests.exceptions.RequestException as e:
            logger.error("MailerSend email error: %s", e)
            return False

    def send_password_reset(self, to_email, username, code, minutes=15):
        context = {"username": username, "code": code, "minutes": minutes}
        return self.send(
            to_email,
            username,
            RESET_SUBJECT,
            RESET_TEXT.format(**context),
            RESET_HTML.format(**context),
        )
