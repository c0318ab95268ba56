"""
Pydantic models for form submissions.

Models:
  HeaderDeclaration    one entry of the JSON-encoded _headers field
  SubmissionResponse   JSON body returned to the submitting page
"""

from typing import Literal, Optional
from pydantic import BaseModel


class HeaderDeclaration(BaseModel):
    """
    A column the form declares, in display order.

    ``type`` is a free-form tag; "file" marks inline-encoded attachments.
    Unknown keys sent by form builders are ignored.
    """
    model_config = {"extra": "ignore"}

    name: str
    type: Optional[str] = None


class SubmissionResponse(BaseModel):
    """
    Response body for the submission endpoint.

    Spam rejections deliberately return result="success" so bots cannot tell
    they were filtered.
    """
    result: Literal["success", "error"]
    message: str
