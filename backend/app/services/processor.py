"""
Submission processor.

Runs one submission through the pipeline:

  1. Validate control fields            (ConfigurationError -> CONFIG_ERROR, 400)
  2. Spam gate                          (rejection -> SPAM, reported as success)
  3. Audit-log the raw fields
  4. Resolve/extend the table schema
  5. Build the row (files ingested per value) and append it
  6. Send the notification email when the form lists CC recipients

Any exception after step 1 aborts the submission: it is logged with the
remaining mail quota, an alert goes to ALERT_EMAIL (best-effort) and the
outcome is FAILED (400). File ingestion failures never get here; they
degrade to empty cells inside step 5.

Public API:
  SubmissionProcessor(collaborators).process(fields) -> SubmissionOutcome
"""

import html
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from app import config
from app.models.submission import SubmissionResponse
from app.services.file_ingester import FileIngester
from app.services.form_data import ConfigurationError, FormFields, Submission, SubmissionContext
from app.services.interfaces import BlobStore, CounterStore, MailSender, SubmissionLog, TabularStore
from app.services.notification import NotificationComposer
from app.services.row_builder import RowBuilder
from app.services.schema_manager import SchemaManager
from app.services.spam_gate import SpamGate

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Data processed successfully"


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

class OutcomeKind(str, Enum):
    ACCEPTED = "accepted"
    SPAM = "spam"
    CONFIG_ERROR = "config_error"
    FAILED = "failed"


@dataclass
class SubmissionOutcome:
    """Result of SubmissionProcessor.process()."""
    kind: OutcomeKind
    message: str
    table_name: Optional[str] = None

    @property
    def status_code(self) -> int:
        if self.kind in (OutcomeKind.ACCEPTED, OutcomeKind.SPAM):
            return 200
        return 400

    def to_response(self) -> SubmissionResponse:
        # SPAM answers exactly like ACCEPTED
        result = "success" if self.status_code == 200 else "error"
        return SubmissionResponse(result=result, message=self.message)


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------

@dataclass
class Collaborators:
    tabular_store: TabularStore
    blob_store: BlobStore
    mail_sender: MailSender
    log: SubmissionLog
    counters: CounterStore


class SubmissionProcessor:

    def __init__(
        self,
        collaborators: Collaborators,
        spam_gate: Optional[SpamGate] = None,
        clock: Optional[Callable[[], datetime]] = None,
        alert_email: Optional[str] = None,
    ):
        self.collaborators = collaborators
        self.clock = clock or (lambda: datetime.now(config.get_timezone()))
        self.spam_gate = spam_gate or SpamGate(collaborators.counters, clock=self.clock)
        self.alert_email = alert_email if alert_email is not None else config.get_alert_email()

        self.schema_manager = SchemaManager(collaborators.tabular_store)
        self.ingester = FileIngester(collaborators.blob_store, collaborators.log)
        self.row_builder = RowBuilder(collaborators.tabular_store, self.ingester)
        self.notifier = NotificationComposer(collaborators.mail_sender, collaborators.log)

    def process(self, fields: FormFields) -> SubmissionOutcome:
        try:
            submission = Submission.from_fields(fields, received_at=self.clock())
        except ConfigurationError as e:
            logger.warning(f"Rejected submission with bad configuration: {e.message}")
            return SubmissionOutcome(OutcomeKind.CONFIG_ERROR, e.message)

        ctx = submission.context
        try:
            return self._run(submission)
        except Exception as e:
            self._handle_failure(ctx, e)
            return SubmissionOutcome(OutcomeKind.FAILED, str(e), ctx.table_name)

    def _run(self, submission: Submission) -> SubmissionOutcome:
        ctx = submission.context
        fields = submission.fields

        verdict = self.spam_gate.evaluate(fields, ctx.table_name, submission.file_field_names())
        if not verdict.accepted:
            logger.info(f"Spam rejected for {ctx.table_name!r} by {verdict.layer}: {verdict.reason}")
            return SubmissionOutcome(OutcomeKind.SPAM, SUCCESS_MESSAGE, ctx.table_name)

        self.collaborators.log.append(
            ctx.table_name, json.dumps(fields.to_dict(), ensure_ascii=False)
        )

        schema = self.schema_manager.resolve(ctx.table_name, submission.declared_headers())
        row = self.row_builder.build(submission, schema)
        self.row_builder.persist(ctx, row)

        self.notifier.notify(ctx, row, fields)

        return SubmissionOutcome(OutcomeKind.ACCEPTED, SUCCESS_MESSAGE, ctx.table_name)

    def _handle_failure(self, ctx: SubmissionContext, error: Exception) -> None:
        """Log the failure and alert the operator. Never raises."""
        logger.exception(f"Error processing form data for {ctx.table_name!r}: {error}")

        try:
            quota = str(self.collaborators.mail_sender.remaining_quota())
        except Exception as e:
            logger.warning(f"Could not read remaining mail quota: {e}")
            quota = "unknown"

        try:
            self.collaborators.log.append(
                ctx.table_name,
                f"Error processing form data: {error}\nRemaining email quota: {quota}",
            )
        except Exception as e:
            logger.warning(f"Failed to log processing error for {ctx.table_name!r}: {e}")

        if not self.alert_email:
            return

        try:
            self.collaborators.mail_sender.send(
                bcc=self.alert_email,
                reply_to="",
                subject=f"Error in form {ctx.table_name}",
                html_body=render_alert(ctx, error),
                sender_name=ctx.domain,
            )
        except Exception as e:
            logger.warning(f"Failed to send error alert for {ctx.table_name!r}: {e}")


def render_alert(ctx: SubmissionContext, error: Exception) -> str:
    return (
        f"<p>There was an error processing the form <strong>{html.escape(ctx.table_name)}</strong>:</p>"
        f"<p><strong><code>{html.escape(str(error))}</code></strong></p>"
        f"<p>See the submission_logs table for the submitted data.</p>"
    )
