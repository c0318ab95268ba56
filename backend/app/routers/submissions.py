"""
Form submission router.

Endpoints:
  POST /    submit a form (urlencoded, multipart or JSON body)
  GET  /    submit a form through the query string

Query-string parameters are merged in before body fields, and repeated keys
become multi-valued fields. Multipart file uploads are converted to the
inline "data:<mime>;base64,<payload>,<filename>" encoding used by
file-typed columns, so both upload styles go through the same ingestion.

The response body is always {"result", "message"}. Spam is answered with
the same 200 "success" body as an accepted submission.
"""

import base64
import logging

from fastapi import APIRouter, Depends, Request, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.models.submission import SubmissionResponse
from app.services.counters import SupabaseCounterStore
from app.services.form_data import FormFields
from app.services.mailer import ResendMailSender
from app.services.processor import Collaborators, SubmissionProcessor
from app.services.storage import SupabaseBlobStore
from app.services.submission_log import SupabaseSubmissionLog
from app.services.tabular_store import SupabaseTabularStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_processor() -> SubmissionProcessor:
    """Build a processor wired to the Supabase stores and Resend."""
    counters = SupabaseCounterStore()
    collaborators = Collaborators(
        tabular_store=SupabaseTabularStore(),
        blob_store=SupabaseBlobStore(),
        mail_sender=ResendMailSender(counters),
        log=SupabaseSubmissionLog(),
        counters=counters,
    )
    return SubmissionProcessor(collaborators)


class BadRequestBody(Exception):
    """Raised when the request body cannot be read as form fields."""


async def _encode_upload(upload: UploadFile) -> str:
    content = await upload.read()
    if not content:
        return "null"
    mime_type = upload.content_type or "application/octet-stream"
    encoded = base64.b64encode(content).decode()
    filename = upload.filename or ""
    return f"data:{mime_type};base64,{encoded},{filename}"


async def read_fields(request: Request) -> FormFields:
    """Collect query-string and body fields into one multi-map."""
    fields = FormFields(request.query_params.multi_items())

    if request.method != "POST":
        return fields

    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            data = await request.json()
        except ValueError:
            raise BadRequestBody("Request body is not valid JSON")
        if not isinstance(data, dict):
            raise BadRequestBody("JSON body must be an object")
        for name, values in FormFields.from_mapping(data).to_dict().items():
            for value in values:
                fields.add(name, value)
        return fields

    if "form" in content_type:
        form = await request.form()
        for name, value in form.multi_items():
            if isinstance(value, str):
                fields.add(name, value)
            else:
                fields.add(name, await _encode_upload(value))

    return fields


@router.api_route("", methods=["GET", "POST"], response_model=SubmissionResponse)
async def submit_form(
    request: Request,
    processor: SubmissionProcessor = Depends(get_processor),
) -> JSONResponse:
    try:
        fields = await read_fields(request)
    except BadRequestBody as exc:
        body = SubmissionResponse(result="error", message=str(exc))
        return JSONResponse(status_code=400, content=body.model_dump())

    outcome = await run_in_threadpool(processor.process, fields)
    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.to_response().model_dump(),
    )
