from .smtp_mail_transport import SmtpMailTransport

__all__ = ["SmtpMailTransport"]
