import pytest

import bootstrap_krowz_environment as bootstrap
import prepare_krowz_vercel_deployment as prepare
import run_krowz

TEMPLATE = (
    "# comment\n"
    "SECRET_KEY=change-this-secret-key\n"
    "RESEND_API_KEY=\n"
    "SUPABASE_URL=https://demo.supabase.co\n"
    "SUPABASE_ANON_KEY=anon\n"
)


def test_render_env_replaces_placeholder_secret():
    content = bootstrap.render_env(TEMPLATE, generate_secret=False)
    secret_line = [line for line in content.splitlines() if line.startswith("SECRET_KEY=")][0]
    assert secret_line != "SECRET_KEY=change-this-secret-key"
    assert len(secret_line.partition("=")[2]) == 64


def test_render_env_keeps_custom_secret():
    content = bootstrap.render_env("SECRET_KEY=mine\n", generate_secret=False)
    assert content == "SECRET_KEY=mine\n"


def test_missing_settings():
    assert bootstrap.missing_settings(TEMPLATE) == ["RESEND_API_KEY"]


def test_create_env_files_respects_existing(tmp_path):
    existing = tmp_path / ".env"
    existing.write_text("KEEP=1\n", encoding="utf-8")
    nested = tmp_path / ".vercel" / ".env.production.local"

    written = bootstrap.create_env_files(
        "NEW=1\n", overwrite=False, variants=[("env", existing), ("vercel", nested)]
    )

    assert written == [nested]
    assert existing.read_text(encoding="utf-8") == "KEEP=1\n"
    assert nested.read_text(encoding="utf-8") == "NEW=1\n"


def test_load_env_file_skips_blank_values(tmp_path):
    env_file = tmp_path / ".env.production"
    env_file.write_text(TEMPLATE + "malformed\n", encoding="utf-8")
    env = prepare.load_env_file(env_file)
    assert "RESEND_API_KEY" not in env
    assert env["SUPABASE_URL"] == "https://demo.supabase.co"


def test_load_env_file_missing(tmp_path):
    with pytest.raises(SystemExit):
        prepare.load_env_file(tmp_path / "absent")


def test_check_required_blocks_incomplete_env():
    with pytest.raises(SystemExit):
        prepare.check_required({"SUPABASE_URL": "x", "SUPABASE_ANON_KEY": "y"}, allow_missing=False)
    prepare.check_required({"SUPABASE_URL": "x"}, allow_missing=True)


def test_prepare_defaults_to_production():
    assert prepare.parse_args([]).environment == ["production"]
    args = prepare.parse_args(["--environment", "preview", "--environment", "production"])
    assert args.environment == ["preview", "production"]


def test_launcher_arguments():
    args = run_krowz.parse_args(["8080", "--production"])
    assert args.port == 8080
    assert args.production is True
    assert run_krowz.parse_args([]).port == 5000
