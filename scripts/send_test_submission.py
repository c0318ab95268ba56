#!/usr/bin/env python3
"""
Dev helper: post a sample form submission to the local Formrelay backend.

Builds a contact-style form (Name, Email, Message, optional CC), optionally
attaches a file, and POSTs it to /api/submissions. Handy for checking that a
new table, its row and the notification email all come out as expected.

Usage
-----
# Basic urlencoded submission to acme#contact on localhost:8000
python scripts/send_test_submission.py

# Ask for the notification email
python scripts/send_test_submission.py --cc ops@example.com

# Attach a file to a file-typed column (multipart upload)
python scripts/send_test_submission.py --file path/to/cv.pdf

# Same file, sent inline as data:<mime>;base64,<payload>,<filename>
python scripts/send_test_submission.py --file path/to/cv.pdf --inline

# Include a fresh anti-spam token, or trip the honeypot on purpose
python scripts/send_test_submission.py --token
python scripts/send_test_submission.py --honeypot

# Target a different backend URL
python scripts/send_test_submission.py --url http://staging.example.com

Spam is answered exactly like success, so check the table export or the
submission_logs table to tell them apart.
"""

import argparse
import base64
import json
import mimetypes
import sys
import textwrap
import time
import uuid
from pathlib import Path

import httpx


# ---------------------------------------------------------------------------
# Field builders
# ---------------------------------------------------------------------------

def _make_token(now: float | None = None) -> str:
    """Return base64("nonce:minute") for the current minute."""
    minute = int((now if now is not None else time.time()) // 60)
    return base64.b64encode(f"{uuid.uuid4().hex[:8]}:{minute}".encode()).decode()


def _inline_file(content: bytes, mime_type: str, filename: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode()},{filename}"


def _build_fields(args: argparse.Namespace) -> dict:
    fields = {
        "_domain": args.domain,
        "_id": args.form_id,
        "_subject": args.subject,
        "Name": args.name,
        "Email": args.email,
        "Message": args.message,
    }
    if args.cc:
        fields["CC"] = args.cc
    if args.token:
        fields["_token"] = _make_token()
    if args.honeypot:
        fields["_gotcha"] = "I am definitely a person"
    if args.file:
        headers = [{"name": n} for n in ("Name", "Email", "Message")]
        headers.append({"name": "Attachment", "type": "file"})
        if args.cc:
            headers.append({"name": "CC"})
        fields["_headers"] = json.dumps(headers)
    return fields


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    parser = argparse.ArgumentParser(
        prog="send_test_submission.py",
        description="Post a sample form submission to the Formrelay backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_submission.py
              python scripts/send_test_submission.py --cc ops@example.com
              python scripts/send_test_submission.py --file cv.pdf --inline
              python scripts/send_test_submission.py --url http://localhost:8000
        """),
    )
    parser.add_argument("--url", default="http://localhost:8000",
                        help="Backend base URL (default: http://localhost:8000)")
    parser.add_argument("--domain", default="acme", help="Value of _domain (default: acme)")
    parser.add_argument("--form-id", default="contact", help="Value of _id (default: contact)")
    parser.add_argument("--subject", default="Test submission", help="Notification subject")
    parser.add_argument("--name", default="Ana Test")
    parser.add_argument("--email", default="ana@example.com")
    parser.add_argument("--message", default="Hello!\nThis is a test submission.")
    parser.add_argument("--cc", default=None, metavar="ADDRESS",
                        help="Notification recipient. No email is sent without it.")
    parser.add_argument("--file", default=None, metavar="PATH",
                        help="File for the 'Attachment' column.")
    parser.add_argument("--inline", action="store_true",
                        help="Send --file as an inline base64 field instead of a multipart upload.")
    parser.add_argument("--token", action="store_true", help="Include a fresh _token.")
    parser.add_argument("--honeypot", action="store_true", help="Fill _gotcha to test spam handling.")
    parser.add_argument("--dry-run", action="store_true", help="Print the fields without sending them.")

    args = parser.parse_args()

    fields = _build_fields(args)
    files = None

    if args.file:
        file_path = Path(args.file)
        if not file_path.exists():
            print(f"ERROR: File not found: {file_path}", file=sys.stderr)
            return 1
        content = file_path.read_bytes()
        mime_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        print(f"Attaching file: {file_path} ({len(content):,} bytes, {mime_type})")
        if args.inline:
            fields["Attachment"] = _inline_file(content, mime_type, file_path.name)
        else:
            files = {"Attachment": (file_path.name, content, mime_type)}

    endpoint = f"{args.url.rstrip('/')}/api/submissions"

    print(f"\nEndpoint : {endpoint}")
    print(f"Table    : {args.domain}#{args.form_id}")

    if args.dry_run:
        display = dict(fields)
        if "Attachment" in display:
            display["Attachment"] = "<inline base64>"
        print("\n[DRY RUN] Fields:")
        print(json.dumps(display, indent=2))
        return 0

    try:
        response = httpx.post(endpoint, data=fields, files=files, timeout=30.0)
    except httpx.HTTPError as e:
        print(f"\nERROR: Request failed: {e}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
