#!/usr/bin/env python3
"""
Dev helper: send a sample email to the local classify-and-route endpoint.

Builds the same JSON body Fin sends for an inbound email, either from one of
the canned scenarios below or from --from/--subject/--body, and POSTs it to
/api/fin/classify-and-route with the bearer token.

Usage
-----
# Spam scenario against localhost:8000
python scripts/send_test_email.py --scenario spam

# Custom email
python scripts/send_test_email.py --from cliente@metal.es --subject "Presupuesto" \
    --body "Necesito 200 piezas de acero" --attachment plano.pdf

# Print the payload without sending it
python scripts/send_test_email.py --scenario inquiry --dry-run

Environment / .env
------------------
FIN_API_TOKEN   Bearer token expected by the backend (required unless --token).
"""

import argparse
import json
import os
import sys
import textwrap
import uuid
from pathlib import Path

import httpx
from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

SCENARIOS = {
    "spam": {
        "from": "promo@ofertas.xyz",
        "subject": "GANASTE!!! CLICK AQUÍ",
        "body": "Oferta limitada, 100% gratis. Felicidades, eres el ganador.",
        "attachments": [],
    },
    "provider": {
        "from": "ventas@laserpro.es",
        "subject": "Re: RFQ-1 Corte láser chapa inox",
        "body": "Adjuntamos nuestra oferta para las 50 unidades solicitadas.",
        "attachments": ["oferta_laserpro.pdf"],
    },
    "out-of-scope": {
        "from": "empleado@arkcutt.com",
        "subject": "Duda sobre mi nómina de octubre",
        "body": "Hola, creo que falta una partida en la nómina.",
        "attachments": [],
    },
    "inquiry": {
        "from": "compras@nuevocliente.es",
        "subject": "Solicitud de presupuesto",
        "body": "Necesitamos cotizar 100 piezas de aluminio 6082, adjunto planos.",
        "attachments": ["pieza_v2.step", "plano_pieza.pdf"],
    },
    "uncertain": {
        "from": "alguien@example.com",
        "subject": "Consulta",
        "body": "¿Abrís en agosto?",
        "attachments": [],
    },
}


def _detect_content_type(filename: str) -> str:
    ext = Path(filename).suffix.lower()
    return {
        ".pdf": "application/pdf",
        ".step": "application/step",
        ".stp": "application/step",
        ".dxf": "image/vnd.dxf",
        ".dwg": "image/vnd.dwg",
        ".png": "image/png",
        ".jpg": "image/jpeg",
    }.get(ext, "application/octet-stream")


def _build_payload(
    from_email: str,
    subject: str,
    body: str,
    thread_id: str,
    attachments: list,
) -> dict:
    """Build the classify-and-route request body."""
    return {
        "from": from_email,
        "subject": subject,
        "body": body,
        "thread_id": thread_id,
        "has_attachments": bool(attachments),
        "attachments": [
            {"filename": name, "content_type": _detect_content_type(name)}
            for name in attachments
        ],
    }


def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2, ensure_ascii=False))
    except ValueError:
        print(response.text)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_email.py",
        description=textwrap.dedent("""\
            Send a sample email to the Arkcutt classify-and-route endpoint.

            Reads FIN_API_TOKEN from the environment or a .env file in the
            project root.
        """),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_email.py --scenario spam
              python scripts/send_test_email.py --scenario provider --thread-id t-42
              python scripts/send_test_email.py --from a@b.es --subject "Precio"
              python scripts/send_test_email.py --url http://localhost:8000 --dry-run
        """),
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--scenario",
        choices=list(SCENARIOS),
        default="inquiry",
        help="Canned email to send (default: inquiry)",
    )
    parser.add_argument("--from", dest="from_email", default=None, help="Override sender address")
    parser.add_argument("--subject", default=None, help="Override subject")
    parser.add_argument("--body", default=None, help="Override body")
    parser.add_argument(
        "--attachment",
        action="append",
        default=None,
        metavar="FILENAME",
        help="Attachment filename (repeatable). Replaces the scenario's attachments.",
    )
    parser.add_argument(
        "--thread-id",
        default=None,
        help="Conversation thread id (default: a random one)",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Override the bearer token. Defaults to FIN_API_TOKEN.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload JSON without sending it.",
    )

    args = parser.parse_args()

    token = args.token or os.getenv("FIN_API_TOKEN", "")
    if not token and not args.dry_run:
        print(
            "ERROR: No API token found.\n"
            "Set FIN_API_TOKEN in your environment or .env file, or pass --token.",
            file=sys.stderr,
        )
        return 1

    scenario = SCENARIOS[args.scenario]
    payload = _build_payload(
        from_email=args.from_email or scenario["from"],
        subject=args.subject if args.subject is not None else scenario["subject"],
        body=args.body if args.body is not None else scenario["body"],
        thread_id=args.thread_id or f"thread-{uuid.uuid4().hex[:12]}",
        attachments=args.attachment if args.attachment is not None else scenario["attachments"],
    )

    endpoint = f"{args.url.rstrip('/')}/api/fin/classify-and-route"

    print(f"Scenario : {args.scenario}")
    print(f"Endpoint : {endpoint}")
    print(f"From     : {payload['from']}")
    print(f"Subject  : {payload['subject']}")
    print(f"Thread   : {payload['thread_id']}")

    if args.dry_run:
        print("\n[DRY RUN] Payload:")
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    try:
        response = httpx.post(
            endpoint,
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
            timeout=10.0,
        )
    except httpx.HTTPError as e:
        print(f"\nERROR: Request failed: {e}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
