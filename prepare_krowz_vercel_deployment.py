#!/usr/bin/env python3
"""# Krowz Vercel Deployment Preparation Script

Prepares a working tree for its first Vercel deployment of the Krowz site:

1. Confirm the script runs from the repository root and make sure the local
   environment files exist (via :mod:`bootstrap_krowz_environment`).
2. Confirm the Vercel CLI is installed (optionally with ``npm``) and logged in.
3. Link the working tree to a Vercel project.
4. Push the values from ``.env.production`` to the selected Vercel
   environments.  Blank values are skipped, and the push is refused while the
   Resend or Supabase settings are blank unless ``--allow-missing`` is given,
   because the deployed relay and verifier would only ever answer with server
   errors.

Every subprocess keeps the terminal attached so the CLI's interactive prompts
(``vercel login``, ``vercel link``) behave exactly as when run by hand.
"""

from __future__ import annotations

import argparse
import logging
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Iterable

import bootstrap_krowz_environment as bootstrap

REPO_SENTINEL = Path("krowz_app.py")
DEFAULT_ENV_FILE = Path(".env.production")
VERCEL_ENVIRONMENTS = ("production", "preview", "development")


def configure_logging(level: str) -> None:
    """Initialise structured logging for the script."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(levelname)s] %(message)s",
    )


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Define and parse command line arguments for the helper."""

    parser = argparse.ArgumentParser(
        description="Prepare the Krowz site for a new Vercel deployment."
    )
    parser.add_argument("--project-name", help="Vercel project slug to use when linking.")
    parser.add_argument("--org-slug", help="Vercel organisation slug to use when linking.")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=DEFAULT_ENV_FILE,
        help="Environment file whose values are pushed (default: .env.production).",
    )
    parser.add_argument(
        "--environment",
        action="append",
        choices=VERCEL_ENVIRONMENTS,
        help="Vercel environment to push to; repeatable (default: production).",
    )
    parser.add_argument(
        "--skip-cli-install",
        action="store_true",
        help="Do not install the Vercel CLI automatically when it is missing.",
    )
    parser.add_argument(
        "--skip-env-sync",
        action="store_true",
        help="Skip pushing environment values to Vercel.",
    )
    parser.add_argument(
        "--allow-missing",
        action="store_true",
        help="Push even when Resend or Supabase settings are blank.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Set the verbosity of output (DEBUG, INFO, WARNING, ERROR).",
    )
    args = parser.parse_args(argv)
    args.environment = args.environment or ["production"]
    return args


def ensure_repository_structure() -> None:
    """Abort with a helpful message if the script is not run from the repo."""

    if not REPO_SENTINEL.exists():
        logging.error(
            "Repository sentinel %s not found. Run this script from the repo root.",
            REPO_SENTINEL,
        )
        raise SystemExit(1)


def bootstrap_environment() -> None:
    """Create the local environment files when they are missing."""

    try:
        template = bootstrap.read_template()
    except FileNotFoundError as exc:
        logging.error("%s", exc)
        raise SystemExit(1) from exc
    bootstrap.create_env_files(bootstrap.render_env(template, generate_secret=True), overwrite=False)


def ensure_vercel_cli(skip_install: bool) -> None:
    """Install the Vercel CLI with npm when necessary, then confirm the login."""

    if shutil.which("vercel") is None:
        if skip_install or shutil.which("npm") is None:
            logging.error(
                "Vercel CLI not found. Install it with `npm install --global vercel` "
                "and re-run the script."
            )
            raise SystemExit(1)
        logging.info("Installing Vercel CLI via npm.")
        subprocess.check_call(["npm", "install", "--global", "vercel"])

    whoami = subprocess.run(["vercel", "whoami"], capture_output=True, text=True)
    if whoami.returncode != 0:
        logging.warning("Not logged in to Vercel CLI. Launching interactive login flow now.")
        subprocess.check_call(["vercel", "login"])
        whoami = subprocess.run(["vercel", "whoami"], capture_output=True, text=True)
        if whoami.returncode != 0:
            logging.error("Login did not complete successfully. Rerun the script once authenticated.")
            raise SystemExit(1)
    logging.info("Logged in to Vercel as %s", whoami.stdout.strip())


def link_project(project_name: str | None, org_slug: str | None) -> None:
    """Ensure the working tree is linked to a Vercel project."""

    project_file = Path(".vercel") / "project.json"
    if project_file.exists():
        logging.info("Existing Vercel project link found at %s", project_file)
        return

    command = ["vercel", "link"]
    if project_name:
        command.extend(["--project", project_name])
    if org_slug:
        command.extend(["--org", org_slug])
    subprocess.check_call(command)


def load_env_file(path: Path) -> dict[str, str]:
    """Parse a KEY=VALUE environment file, dropping blank values."""

    if not path.exists():
        logging.error("Environment file %s not found.", path)
        raise SystemExit(1)

    env_vars: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            logging.warning("Skipping malformed line in %s: %s", path, stripped)
            continue
        key, value = stripped.split("=", 1)
        if not value.strip():
            logging.debug("Skipping blank value for %s", key.strip())
            continue
        env_vars[key.strip()] = value.strip()
    return env_vars


def check_required(env: dict[str, str], allow_missing: bool) -> None:
    """Refuse to continue while integration settings are missing."""

    missing = [key for key in bootstrap.REQUIRED_SETTINGS if key not in env]
    for key in missing:
        logging.warning("%s is not set; the %s will fail.", key, bootstrap.REQUIRED_SETTINGS[key])
    if missing and not allow_missing:
        logging.error("Fill in the missing settings or pass --allow-missing.")
        raise SystemExit(1)


def push_env_variables(env: dict[str, str], environment: str) -> None:
    """Send variables to the specified Vercel environment."""

    for key, value in env.items():
        logging.info("Pushing %s to Vercel %s environment", key, environment)
        process = subprocess.run(
            ["vercel", "env", "add", key, environment],
            input=f"{value}\n".encode("utf-8"),
            capture_output=True,
        )
        if process.returncode != 0:
            stderr = process.stderr.decode("utf-8", errors="ignore")
            logging.error("Failed to push %s to %s. Output: %s", key, environment, stderr.strip())
            raise SystemExit(1)


def main(argv: Iterable[str] | None = None) -> None:
    """Script entry point coordinating the deployment preparation flow."""

    args = parse_args(argv)
    configure_logging(args.log_level)

    ensure_repository_structure()
    bootstrap_environment()
    ensure_vercel_cli(skip_install=args.skip_cli_install)
    link_project(args.project_name, args.org_slug)

    if args.skip_env_sync:
        logging.info("Skipping environment synchronisation as requested.")
    else:
        env_vars = load_env_file(args.env_file)
        check_required(env_vars, args.allow_missing)
        for environment in args.environment:
            push_env_variables(env_vars, environment)

    logging.info("Ready. Run `vercel deploy --prod` and open /r/<token> once to check the verifier.")


if __name__ == "__main__":
    try:
        main()
    except subprocess.CalledProcessError as exc:
        command = " ".join(shlex.quote(part) for part in exc.cmd) if exc.cmd else "<unknown>"
        logging.error("Command failed: %s", command)
        raise SystemExit(exc.returncode) from exc
