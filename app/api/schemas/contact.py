from pydantic import BaseModel, Field


class ContactRequest(BaseModel):
    """Website contact form. Blank required fields are rejected by the route."""

    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)
    email: str = Field("", max_length=320)
    phone: str | None = Field(None, max_length=40)
    message: str = Field("", max_length=5000)
