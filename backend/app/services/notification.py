"""
Notification email composer.

Renders a built row as an HTML table and mails it to the addresses listed in
the form's CC field. Sending is opt-in: no CC, no email.

Each label is framed by invisible "- **" / "**" markers so that mail clients
and tools that convert HTML to markdown still show the label in bold as a
list item.

Public API:
  render_html(row) -> str
  NotificationComposer(mail_sender, log).compose(ctx, row, fields) -> NotificationEmail | None
  NotificationComposer.send(ctx, email)
"""

import html
import logging
from dataclasses import dataclass
from typing import Optional

from app.services.file_ingester import EmptyFile, StoredFile
from app.services.form_data import RECIPIENTS_FIELD, FormFields, SubmissionContext
from app.services.interfaces import MailSender, SubmissionLog
from app.services.row_builder import BuiltRow, CellValue

logger = logging.getLogger(__name__)

THUMBNAIL_WIDTH = 320

_LABEL_OPEN = '<span style="opacity:0;font-size:.01px">- **</span>'
_LABEL_CLOSE = '<span style="opacity:0">**</span>'
_PRE_STYLE = "font-family:inherit;margin:0"


@dataclass
class NotificationEmail:
    bcc: str
    reply_to: str
    subject: str
    html_body: str
    sender_name: str


def render_value(value: CellValue) -> str:
    if isinstance(value, StoredFile):
        url = html.escape(value.view_url, quote=True)
        if value.thumbnail_url:
            thumb = html.escape(value.thumbnail_url, quote=True)
            inner = f'<img src="{thumb}" width="{THUMBNAIL_WIDTH}">'
        else:
            inner = html.escape(value.filename)
        return f'<a href="{url}">{inner}</a>'
    if isinstance(value, EmptyFile):
        return ""

    text = html.escape(value)
    if "\n" in value:
        indented = text.replace("\n", "\n  ")
        return f'<pre style="{_PRE_STYLE}">  {indented}</pre>'
    return text


def render_label(name: str, index: Optional[int]) -> str:
    suffix = f" {index}" if index is not None else ""
    return f"{_LABEL_OPEN}<strong>{html.escape(name)}{suffix}:</strong>{_LABEL_CLOSE}"


def render_html(row: BuiltRow) -> str:
    """One table row per (column, value) pair; the CC column is left out."""
    rows: list[str] = []
    for cell in row.cells:
        name = cell.column.name
        if not name or name == RECIPIENTS_FIELD:
            continue
        multiple = len(cell.values) > 1
        for i, value in enumerate(cell.values):
            label = render_label(name, i + 1 if multiple else None)
            rows.append(f"<tr><td>{label}</td><td>{render_value(value)}</td></tr>")
    return '<table><tbody style="vertical-align:top">' + "".join(rows) + "</tbody></table>"


class NotificationComposer:

    def __init__(self, mail_sender: MailSender, log: SubmissionLog):
        self.mail_sender = mail_sender
        self.log = log

    def compose(
        self,
        ctx: SubmissionContext,
        row: BuiltRow,
        fields: FormFields,
    ) -> Optional[NotificationEmail]:
        """Build the email, or return None when the form has no recipients."""
        bcc = ",".join(fields.recipients())
        if not bcc:
            return None

        return NotificationEmail(
            bcc=bcc,
            reply_to=",".join(fields.applicant_emails()),
            subject=ctx.subject,
            html_body=render_html(row),
            sender_name=ctx.domain,
        )

    def send(self, ctx: SubmissionContext, email: NotificationEmail) -> None:
        """Deliver the email. Transport errors propagate to the caller."""
        self.mail_sender.send(
            bcc=email.bcc,
            reply_to=email.reply_to,
            subject=email.subject,
            html_body=email.html_body,
            sender_name=email.sender_name,
        )
        logger.info(f"Notification for {ctx.table_name!r} sent to {email.bcc}")
        try:
            self.log.append(ctx.table_name, f"Remaining email quota: {self.mail_sender.remaining_quota()}")
        except Exception as e:
            logger.warning(f"Failed to log remaining quota for {ctx.table_name!r}: {e}")

    def notify(self, ctx: SubmissionContext, row: BuiltRow, fields: FormFields) -> Optional[NotificationEmail]:
        email = self.compose(ctx, row, fields)
        if email is None:
            logger.info(f"No CC recipients for {ctx.table_name!r}, skipping notification")
            return None
        self.send(ctx, email)
        return email
