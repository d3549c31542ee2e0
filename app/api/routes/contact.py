import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, status
from pydantic import EmailStr, TypeAdapter, ValidationError

from app.api.schemas.contact import ContactRequest
from app.core.config import settings
from app.services.email_service import send_contact_acknowledgement_email, send_contact_message_email

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/contact", tags=["contact"])

_email_adapter = TypeAdapter(EmailStr)


@router.post("")
async def submit_contact_form(body: ContactRequest, background_tasks: BackgroundTasks) -> dict:
    """Forward a visitor's message to the business inbox and acknowledge it."""
    first_name = body.first_name.strip()
    last_name = body.last_name.strip()
    email = body.email.strip()
    message = body.message.strip()
    if not (first_name and last_name and email and message):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields.")
    try:
        email = str(_email_adapter.validate_python(email))
    except ValidationError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email address.")
    contact = ContactRequest(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=(body.phone or "").strip() or None,
        message=message,
    )
    background_tasks.add_task(send_contact_message_email, settings.contact_email, contact)
    background_tasks.add_task(send_contact_acknowledgement_email, contact)
    logger.info("Contact form message queued from %s", email)
    return {"message": "Message received"}
