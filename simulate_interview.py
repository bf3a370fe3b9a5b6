#!/usr/bin/env python3
"""
Synthetic Interview Simulator.

Drives a complete interview against a running interview assistant service:
uploads a generated DOCX resume, confirms the extracted contact details,
answers all six questions and prints the final score and summary.

Usage:
    # Start the service first:
    uv run python run_service.py --fast

    # In another terminal, run the simulator:
    uv run python simulate_interview.py

    # With custom options:
    uv run python simulate_interview.py --service-url http://localhost:8780 --candidate "Jane Doe"
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import os
import random
import sys
from typing import Any, Final, Optional

import httpx
from docx import Document

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger: logging.Logger = logging.getLogger(__name__)


# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS: Final[int] = 0
EXIT_CONNECTION_ERROR: Final[int] = 1
EXIT_SERVICE_UNHEALTHY: Final[int] = 2
EXIT_SESSION_ERROR: Final[int] = 3
EXIT_INTERRUPTED: Final[int] = 130  # Standard SIGINT exit code


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_SERVICE_URL: Final[str] = "http://127.0.0.1:8780"
DEFAULT_CANDIDATE_NAME: Final[str] = "Sarah Chen"
DEFAULT_EMAIL: Final[str] = "sarah.chen@example.com"
DEFAULT_PHONE: Final[str] = "(555) 123-4567"

# Seconds to "type" each answer, scaled by answer length
TYPING_SECONDS_PER_WORD: Final[float] = 0.02
MAX_TYPING_DELAY: Final[float] = 1.5


# =============================================================================
# Synthetic Resume and Answers
# =============================================================================

RESUME_LINES = [
    "{name}",
    "Senior Full Stack Developer",
    "Email: {email} | Phone: {phone}",
    "",
    "Summary",
    "Six years building React front ends and Node.js services for e-commerce platforms.",
    "",
    "Experience",
    "Acme Commerce - Senior Engineer (2021-present)",
    "Led migration of the storefront to React 18 with server-side rendering.",
    "Built an Express/Node.js order API handling 2,000 requests per second.",
    "Introduced Redux Toolkit and React Query to replace ad-hoc state management.",
    "",
    "Skills",
    "JavaScript, TypeScript, React, Redux, Node.js, Express, PostgreSQL, Redis, Docker",
]

# One answer per question, strongest first; the last is left blank
CANDIDATE_ANSWERS = [
    "Functional components are plain functions that return JSX and use hooks such as "
    "useState and useEffect for state and lifecycle. Class components extend "
    "React.Component and use this.state plus lifecycle methods. Hooks made function "
    "components the default because they compose logic better.",
    "let and const are block scoped while var is function scoped and hoisted. const "
    "prevents reassignment of the binding but an object it points to can still change. "
    "I use const by default and let only when I reassign.",
    "useEffect runs after render. The dependency array controls when it re-runs, and "
    "the cleanup function removes subscriptions or timers before the next run or unmount.",
    "Middleware in Express is a function receiving req, res and next. It can modify "
    "the request, end the response or call next to pass control, for example for "
    "authentication, logging or error handling.",
    "Use the profiler.",
    "",
]


def build_resume_docx(name: str, email: str, phone: str) -> bytes:
    """Render the synthetic resume as DOCX bytes."""
    doc = Document()
    for line in RESUME_LINES:
        doc.add_paragraph(line.format(name=name, email=email, phone=phone))
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


# =============================================================================
# Simulation Runner
# =============================================================================

async def _post(client: httpx.AsyncClient, url: str, payload: Optional[dict[str, Any]] = None) -> Optional[dict[str, Any]]:
    try:
        resp = await client.post(url, json=payload or {})
    except httpx.RequestError as exc:
        logger.error("Request to %s failed: %s", url, exc)
        return None
    if resp.status_code != 200:
        logger.error("Request to %s failed (%d): %s", url, resp.status_code, resp.text)
        return None
    return resp.json()


async def run_simulation(
    service_url: str,
    candidate_name: str,
    email: str,
    phone: str,
) -> int:
    """
    Run one full interview against the service.

    Args:
        service_url: Base URL of the interview assistant service.
        candidate_name: Name written into the synthetic resume.
        email: Email written into the synthetic resume.
        phone: Phone number written into the synthetic resume.

    Returns:
        Exit code indicating success or failure.
    """
    # Question generation and scoring can take a while against a live model
    async with httpx.AsyncClient(timeout=300.0) as client:
        logger.info("Checking service health...")
        try:
            resp = await client.get(f"{service_url}/health")
            if resp.status_code != 200:
                logger.error("Service not healthy: %d", resp.status_code)
                return EXIT_SERVICE_UNHEALTHY
            logger.info("Service healthy: %s", resp.json())
        except httpx.ConnectError:
            logger.error("Cannot connect to service at %s. Is it running?", service_url)
            logger.error("Start it with: uv run python run_service.py")
            return EXIT_CONNECTION_ERROR

        # Upload resume
        resume = build_resume_docx(candidate_name, email, phone)
        upload = await _post(
            client,
            f"{service_url}/resume",
            {
                "filename": "sarah_chen_resume.docx",
                "content_base64": base64.b64encode(resume).decode("ascii"),
            },
        )
        if upload is None:
            return EXIT_SESSION_ERROR

        contact = upload.get("contact", {})
        logger.info("Extracted contact: %s", contact)
        if upload.get("missing_fields"):
            logger.info("Filling in missing fields: %s", ", ".join(upload["missing_fields"]))

        # Confirm contact details and start the interview
        logger.info("\n%s", "=" * 60)
        logger.info("Starting interview for: %s", contact.get("name") or candidate_name)
        logger.info("%s\n", "=" * 60)

        created = await _post(
            client,
            f"{service_url}/candidates",
            {
                "name": contact.get("name") or candidate_name,
                "email": contact.get("email") or email,
                "phone": contact.get("phone") or phone,
                "resume_text": upload.get("resume_text", ""),
            },
        )
        if created is None:
            return EXIT_SESSION_ERROR
        candidate_id = created["candidate"]["id"]
        session: dict[str, Any] = created["session"]

        for i, text in enumerate(CANDIDATE_ANSWERS, 1):
            question = session.get("current_question")
            if not session.get("is_active") or question is None:
                break

            logger.info(
                "\n[%d/%d] (%s, %ss) %s",
                i,
                session.get("question_count"),
                question["difficulty"],
                question["time_limit"],
                question["text"],
            )
            delay = min(len(text.split()) * TYPING_SECONDS_PER_WORD + random.uniform(0, 0.2), MAX_TYPING_DELAY)
            await asyncio.sleep(delay)

            if text:
                await _post(client, f"{service_url}/session/draft", {"text": text})
                truncated = f"{text[:80]}..." if len(text) > 80 else text
                logger.info("Answer: %s", truncated)
            else:
                logger.info("Answer: (left blank)")

            result = await _post(client, f"{service_url}/session/answer", {})
            if result is None:
                return EXIT_SESSION_ERROR
            session = result["session"]

        resp = await client.get(f"{service_url}/candidates/{candidate_id}")
        if resp.status_code != 200:
            logger.error("Failed to fetch candidate: %s", resp.text)
            return EXIT_SESSION_ERROR
        candidate: dict[str, Any] = resp.json()

        logger.info("\n%s", "=" * 60)
        logger.info("Interview simulation complete!")
        logger.info("%s", "=" * 60)
        logger.info("Status: %s", candidate.get("interview_status"))
        logger.info("Final score: %s/100", candidate.get("final_score"))
        for answer in candidate.get("answers", []):
            logger.info("  %s: score=%s time=%ss", answer["question_id"], answer.get("score"), answer["time_spent"])
        logger.info("Summary: %s", candidate.get("ai_summary"))

        logger.info("\n%s", "=" * 60)
        logger.info("View the dashboard at:")
        logger.info("  curl %s/candidates", service_url)
        logger.info("%s", "=" * 60)

    return EXIT_SUCCESS


def main(
    service_url: str | None = None,
    candidate_name: str | None = None,
) -> int:
    """
    Main entry point for the interview simulator.

    Args:
        service_url: Service URL (defaults to env var or localhost:8780).
        candidate_name: Name of the candidate (defaults to "Sarah Chen").

    Returns:
        Exit code indicating success or failure.
    """
    resolved_url = service_url or os.environ.get("SERVICE_URL", DEFAULT_SERVICE_URL)
    resolved_candidate = candidate_name or os.environ.get("CANDIDATE_NAME", DEFAULT_CANDIDATE_NAME)

    logger.info("=" * 60)
    logger.info("Interview Assistant Simulator")
    logger.info("=" * 60)
    logger.info("Target: %s", resolved_url)
    logger.info("Candidate: %s", resolved_candidate)
    logger.info("Answers: %d", len(CANDIDATE_ANSWERS))
    logger.info("")

    try:
        return asyncio.run(
            run_simulation(
                service_url=resolved_url,
                candidate_name=resolved_candidate,
                email=DEFAULT_EMAIL,
                phone=DEFAULT_PHONE,
            )
        )
    except KeyboardInterrupt:
        logger.info("\nSimulation interrupted")
        return EXIT_INTERRUPTED


def cli() -> None:
    """Command-line interface entry point with argument parsing."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Run a synthetic interview against the interview assistant service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run with defaults
    uv run python simulate_interview.py

    # Custom service URL
    uv run python simulate_interview.py --service-url http://localhost:9000

Environment Variables:
    SERVICE_URL      Service URL (default: http://127.0.0.1:8780)
    CANDIDATE_NAME   Candidate name (default: Sarah Chen)
        """,
    )
    parser.add_argument(
        "--service-url",
        type=str,
        default=None,
        help=f"Service URL (default: {DEFAULT_SERVICE_URL})",
    )
    parser.add_argument(
        "--candidate",
        type=str,
        default=None,
        dest="candidate_name",
        help=f"Candidate name (default: {DEFAULT_CANDIDATE_NAME})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    sys.exit(main(service_url=args.service_url, candidate_name=args.candidate_name))


if __name__ == "__main__":
    cli()
