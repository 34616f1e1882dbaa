"""
Background jobs: confirmation mail, password-reset mail and phone codes.

All jobs are keyed by email (or user id) and are no-ops when the user does not
exist, so request handlers can enqueue them without leaking account existence.
"""
import logging

from celery import shared_task

from models import storage
from models.user import User
from models.password_reset_token import PasswordResetToken
from services import mailer, sms

logger = logging.getLogger(__name__)


def _find_by_email(email):
    if not email or not isinstance(email, str):
        return None
    session = storage.get_session()
    return session.query(User).filter(User.email == email.strip().lower()).first()


@shared_task(name="workers.tasks.send_confirmation_email", ignore_result=True)
def send_confirmation_email(user_id: str):
    user = storage.get(User, user_id)
    if user is None or user.email_confirmed or not user.confirmation_token:
        return
    mailer.send_confirmation(user)


@shared_task(name="workers.tasks.send_email_confirmation", ignore_result=True)
def send_email_confirmation(email: str):
    user = _find_by_email(email)
    if user is None or user.email_confirmed:
        # No-op if user not found or already confirmed
        return
    user.generate_email_confirmation_token()
    user.save()
    mailer.send_confirmation(user)


@shared_task(name="workers.tasks.send_password_reset", ignore_result=True)
def send_password_reset(email: str):
    user = _find_by_email(email)
    if user is None:
        logger.info("Password reset requested for unknown email")
        return
    session = storage.get_session()
    # Only one reset token may be active per user
    PasswordResetToken.active_query(session).filter(PasswordResetToken.user_id == user.id).update(
        {PasswordResetToken.used: True}, synchronize_session="fetch"
    )
    token = PasswordResetToken.generate_for(user)
    mailer.send_password_reset(user, token)


@shared_task(name="workers.tasks.send_phone_confirmation", ignore_result=True)
def send_phone_confirmation(email: str):
    user = _find_by_email(email)
    if user is None or not user.phone:
        # No-op if user/phone not found
        return
    if sms.send_verification_code(user):
        user.save()
