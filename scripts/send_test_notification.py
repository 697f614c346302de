#!/usr/bin/env python3
"""
Dev helper: send a sample completion notification to a running backend.

Builds a small HTML report, optionally asks for it to be attached as a PDF,
and POSTs it to /api/send-completion-email. The response JSON is printed
as-is so provider errors are visible.

Usage
-----
# Basic: plain HTML email to one recipient on localhost:8000
python scripts/send_test_notification.py --to you@example.com

# Several recipients, with the PDF attachment
python scripts/send_test_notification.py --to "a@example.com, b@example.com" --pdf

# Custom subject / body file / backend URL
python scripts/send_test_notification.py --to you@example.com \\
    --subject "Nightly build finished" --html-file report.html \\
    --url http://staging.example.com

# The project-completion variant (admin + client emails)
python scripts/send_test_notification.py --to client@example.com \\
    --project "Website redesign" --name "Jane Client"

Exit code is 0 when the backend answers 200, 1 otherwise.
"""

import argparse
import json
import sys
from pathlib import Path

import httpx

_SAMPLE_HTML = """
<h1>Job completed</h1>
<p>The nightly export finished without errors.</p>
<table>
  <tr><th>Step</th><th>Duration</th><th>Status</th></tr>
  <tr><td>Extract</td><td>42s</td><td>OK</td></tr>
  <tr><td>Transform</td><td>3m 10s</td><td>OK</td></tr>
  <tr><td>Load</td><td>58s</td><td>OK</td></tr>
</table>
""".strip()


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def _build_completion_payload(args: argparse.Namespace) -> dict:
    html = Path(args.html_file).read_text() if args.html_file else _SAMPLE_HTML
    return {
        "recipients": args.to,
        "subject": args.subject,
        "html": html,
        "generatePdf": args.pdf,
    }


def _build_project_payload(args: argparse.Namespace) -> dict:
    return {
        "name": args.name,
        "email": args.to,
        "projectName": args.project,
    }


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

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--to", required=True, help="Recipient(s), comma-separated")
    parser.add_argument("--subject", default="Job completed", help="Email subject")
    parser.add_argument("--html-file", help="Send this HTML file instead of the sample body")
    parser.add_argument("--pdf", action="store_true", help="Attach the HTML rendered as PDF")
    parser.add_argument("--project", help="Use the project-completion endpoint with this project name")
    parser.add_argument("--name", default="Test Client", help="Client name (project-completion only)")
    parser.add_argument("--url", default="http://localhost:8000", help="Backend base URL")
    parser.add_argument("--timeout", type=float, default=120, help="Request timeout in seconds")
    args = parser.parse_args(argv)

    if args.project:
        endpoint = f"{args.url.rstrip('/')}/api/send-project-completion"
        payload = _build_project_payload(args)
    else:
        endpoint = f"{args.url.rstrip('/')}/api/send-completion-email"
        payload = _build_completion_payload(args)

    print(f"POST {endpoint}")

    try:
        response = httpx.post(endpoint, json=payload, timeout=args.timeout)
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the backend running? Start it with:\n"
            "  uvicorn app.main:app --app-dir backend --reload",
            file=sys.stderr,
        )
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
