"""
# Krowz Environment Bootstrap Script

This utility prepares local configuration for the Krowz site.  It renders
``.env.example`` into the environment files read by ``flask run`` (``.env``)
and by Vercel (``.env.local``, ``.env.production`` and
``.vercel/.env.production.local``), optionally replacing the placeholder
``SECRET_KEY`` with a freshly generated one.

Once the files are written the helper reports which integration settings are
still blank.  The site starts without them, but the contact relay answers
``500`` until ``RESEND_API_KEY`` is set and every redemption is denied with a
server error until the Supabase settings are present.
"""

from __future__ import annotations

import argparse
import logging
import secrets
from pathlib import Path
from typing import Iterable

ENV_TEMPLATE = Path(".env.example")
DEFAULT_SECRET = "change-this-secret-key"
ENV_VARIANTS: tuple[tuple[str, Path], ...] = (
    ("Primary .env", Path(".env")),
    ("Local overrides .env.local", Path(".env.local")),
    ("Production defaults .env.production", Path(".env.production")),
    (
        "Vercel CLI production env .vercel/.env.production.local",
        Path(".vercel") / ".env.production.local",
    ),
)
# Settings each flow needs before it can reach its external service
REQUIRED_SETTINGS: dict[str, str] = {
    "RESEND_API_KEY": "contact relay (Resend)",
    "SUPABASE_URL": "redemption verifier (Supabase)",
    "SUPABASE_ANON_KEY": "redemption verifier (Supabase)",
}


def configure_logging(level: str) -> None:
    """Initialise the root logger using the provided level name."""

    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments for the bootstrap helper."""

    parser = argparse.ArgumentParser(
        description=(
            "Create populated environment files for the Krowz site, "
            "generating a secure SECRET_KEY if requested."
        )
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing environment files instead of leaving them untouched.",
    )
    parser.add_argument(
        "--generate-secret",
        action="store_true",
        help="Generate a new SECRET_KEY value using Python's secrets module.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Set the verbosity of the bootstrap script (DEBUG, INFO, etc.).",
    )
    return parser.parse_args(argv)


def read_template(path: Path = ENV_TEMPLATE) -> str:
    """Return the contents of ``.env.example`` or raise an informative error."""

    if not path.exists():
        raise FileNotFoundError(
            f"The {path} template is missing; run from the repository root."
        )
    return path.read_text(encoding="utf-8")


def build_secret(existing: str, should_replace: bool) -> str:
    """Return the SECRET_KEY value to write, never keeping the placeholder."""

    if should_replace or not existing or existing == DEFAULT_SECRET:
        return secrets.token_hex(32)
    return existing


def render_env(template: str, generate_secret: bool) -> str:
    """Return ``template`` with its ``SECRET_KEY`` line filled in."""

    lines = []
    for line in template.splitlines():
        if line.startswith("SECRET_KEY="):
            current = line.partition("=")[2].strip()
            lines.append(f"SECRET_KEY={build_secret(current, generate_secret)}")
        else:
            lines.append(line)
    return "\n".join(lines) + "\n"


def missing_settings(content: str) -> list[str]:
    """List the required settings left blank in an environment file body."""

    values: dict[str, str] = {}
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, _, value = stripped.partition("=")
        values[key.strip()] = value.strip()
    return [key for key in REQUIRED_SETTINGS if not values.get(key)]


def create_env_files(
    content: str,
    overwrite: bool,
    variants: Iterable[tuple[str, Path]] = ENV_VARIANTS,
) -> list[Path]:
    """Write environment files for local use and Vercel CLI integration."""

    written = []
    for description, path in variants:
        if path.exists() and not overwrite:
            logging.info("Existing %s found; run with --force to overwrite.", path)
            continue

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logging.info("%s written to %s", description, path)
        written.append(path)
    return written


def main(argv: Iterable[str] | None = None) -> None:
    """Entry point that orchestrates the environment bootstrap process."""

    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        template = read_template()
    except FileNotFoundError as exc:
        logging.error("%s", exc)
        raise SystemExit(1) from exc

    content = render_env(template, args.generate_secret)
    create_env_files(content, args.force)

    for key in missing_settings(content):
        logging.warning("%s is blank; the %s will not work until it is set.", key, REQUIRED_SETTINGS[key])
    logging.info("Bootstrap complete. Review .env (and its Vercel copies) before deploying.")


if __name__ == "__main__":
    main()
