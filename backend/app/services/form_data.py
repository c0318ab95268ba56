"""
Submission field handling.

Turns the raw key/value bag posted by a form into a typed multi-map and a
request-scoped SubmissionContext. Reserved keys (underscore-prefixed control
fields) are kept apart from the visitor's form data.

Public API:
  FormFields                  ordered multi-map of field name -> list[str]
  Submission.from_fields()    validate control fields, raise ConfigurationError
  SubmissionContext           domain/form/table/subject/timestamp for one request
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from pydantic import TypeAdapter, ValidationError

from app.models.submission import HeaderDeclaration
from app.models.table import ColumnKind

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Reserved field names (case-sensitive)
# ---------------------------------------------------------------------------

HONEYPOT_FIELD = "_gotcha"
TOKEN_FIELD = "_token"
HEADERS_FIELD = "_headers"
SUBJECT_FIELD = "_subject"
FORM_ID_FIELD = "_id"
DOMAIN_FIELD = "_domain"
TABLE_NAME_FIELD = "_sheetname"
RECIPIENTS_FIELD = "CC"

# Applicant email variants, in lookup priority order
EMAIL_FIELDS = ("Email", "email", "Mail", "mail")

RESERVED_FIELDS = frozenset({
    HONEYPOT_FIELD,
    TOKEN_FIELD,
    HEADERS_FIELD,
    SUBJECT_FIELD,
    FORM_ID_FIELD,
    DOMAIN_FIELD,
    TABLE_NAME_FIELD,
})

DEFAULT_SUBJECT = "Form Submission"

_headers_adapter = TypeAdapter(list[HeaderDeclaration])


class ConfigurationError(Exception):
    """Raised when a submission lacks the control fields needed to route it."""
    def __init__(self, message: str, error_code: str):
        super().__init__(message)
        self.error_code = error_code
        self.message = message


# ---------------------------------------------------------------------------
# Multi-map
# ---------------------------------------------------------------------------

class FormFields:
    """
    Ordered multi-map of field name -> list of raw string values.

    Keys keep first-seen order; repeated keys (checkbox groups, multi-selects)
    accumulate values instead of overwriting.
    """

    def __init__(self, items: Iterable[tuple[str, str]] = ()):
        self._values: dict[str, list[str]] = {}
        for name, value in items:
            self.add(name, value)

    @classmethod
    def from_mapping(cls, data: dict) -> "FormFields":
        """Build from a dict whose values are a string, a list of strings, or None."""
        fields = cls()
        for name, value in data.items():
            if isinstance(value, list):
                for item in value:
                    fields.add(name, item)
            else:
                fields.add(name, value)
        return fields

    def add(self, name: str, value) -> None:
        if value is None:
            value = ""
        elif not isinstance(value, str):
            value = str(value)
        self._values.setdefault(name, []).append(value)

    def names(self) -> list[str]:
        return list(self._values)

    def values(self, name: str) -> list[str]:
        """All values for ``name``; [] when absent."""
        return list(self._values.get(name, []))

    def first(self, name: str) -> str:
        """First value for ``name``; "" when absent."""
        values = self._values.get(name)
        return values[0] if values else ""

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def form_data_names(self) -> list[str]:
        """Field names that belong to the visitor's form, reserved keys excluded."""
        return [name for name in self._values if name not in RESERVED_FIELDS]

    def recipients(self) -> list[str]:
        return [v for v in self.values(RECIPIENTS_FIELD) if v]

    def applicant_emails(self) -> list[str]:
        """Every non-empty value across all applicant-email variants."""
        emails: list[str] = []
        for name in EMAIL_FIELDS:
            emails.extend(v for v in self.values(name) if v)
        return emails

    def to_dict(self) -> dict[str, list[str]]:
        return {name: list(values) for name, values in self._values.items()}

    def __repr__(self) -> str:
        return f"FormFields({self._values!r})"


# ---------------------------------------------------------------------------
# Submission and request context
# ---------------------------------------------------------------------------

@dataclass
class SubmissionContext:
    """Request-scoped routing information threaded through the pipeline."""
    domain: str
    form_id: str
    table_name: str
    subject: str = DEFAULT_SUBJECT
    received_at: Optional[datetime] = None

    @property
    def timestamp_label(self) -> str:
        """Timestamp used as a fallback filename, e.g. 2026-10-19-14-03-59."""
        stamp = self.received_at or datetime.now()
        return stamp.strftime("%Y-%m-%d-%H-%M-%S")


@dataclass
class Submission:
    """A validated submission: routing context, form data and declared headers."""
    context: SubmissionContext
    fields: FormFields
    headers: list[HeaderDeclaration] = field(default_factory=list)

    @classmethod
    def from_fields(
        cls,
        fields: FormFields,
        received_at: Optional[datetime] = None,
    ) -> "Submission":
        """
        Validate the control fields and build the request context.

        Raises:
            ConfigurationError: missing domain/form id, or malformed _headers.
        """
        headers = parse_headers(fields.first(HEADERS_FIELD))

        domain = fields.first(DOMAIN_FIELD).strip()
        form_id = fields.first(FORM_ID_FIELD).strip()
        if not domain or not form_id:
            raise ConfigurationError("Missing domain or form ID", "missing_route")

        table_name = fields.first(TABLE_NAME_FIELD).strip() or f"{domain}#{form_id}"
        subject = fields.first(SUBJECT_FIELD) or DEFAULT_SUBJECT

        context = SubmissionContext(
            domain=domain,
            form_id=form_id,
            table_name=table_name,
            subject=subject,
            received_at=received_at,
        )
        return cls(context=context, fields=fields, headers=headers)

    def declared_headers(self) -> list[HeaderDeclaration]:
        """
        Declared headers, or the form-data field names (untyped) when the
        form did not declare any.
        """
        if self.headers:
            return list(self.headers)
        return [HeaderDeclaration(name=name) for name in self.fields.form_data_names()]

    def file_field_names(self) -> list[str]:
        """Names of the fields declared with a file type tag."""
        return [h.name for h in self.headers if ColumnKind.from_tag(h.type) is ColumnKind.FILE]


def parse_headers(raw: str) -> list[HeaderDeclaration]:
    """
    Parse the JSON-encoded ``_headers`` field.

    An empty value means "no declaration". Anything that is not a JSON array
    of {name, type?} objects is a configuration error.
    """
    if not raw or not raw.strip():
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid _headers JSON: {e}", "invalid_headers")
    try:
        return _headers_adapter.validate_python(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid _headers declaration: {e.error_count()} error(s)",
            "invalid_headers",
        )
