"""
BizDash CLI — Session and guard commands against the dashboard API.

Commands:
- bizdash login    — Sign in and store the session locally
- bizdash register — Create an account and sign in
- bizdash logout   — Sign out and clear the local session
- bizdash refresh  — Exchange the refresh token for new tokens
- bizdash profile  — Fetch the signed-in user's profile from the API
- bizdash whoami   — Show the stored session (never the tokens)
- bizdash check    — Run the route guard for a path, optionally with a role
- bizdash run      — Start the Reflex dev server

The CLI keeps its session in the file backend (session.file_path) unless
bizdash.yaml selects redis, so sign-in survives between invocations.

Exit codes: 0 ok/authorized, 1 unauthorized/denied, 2 usage or config error.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import subprocess
import sys
from typing import Optional

from bizdash.engine.config import load_config
from bizdash.engine.errors import BizDashConfigError, BizDashIntegrationError, BizDashSessionError
from bizdash.engine.runtime import DashboardRuntime
from bizdash.engine.security import RecordingNavigator
from bizdash.engine.session import Role
from bizdash.engine.storage import FileStorage

logger = logging.getLogger("bizdash.cli")

EXIT_OK = 0
EXIT_DENIED = 1
EXIT_USAGE = 2


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="bizdash",
        description="BizDash — dashboard access control",
    )
    parser.add_argument(
        "--config", default=None, help="Path to bizdash.yaml (default: auto-discover)"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    login_parser = subparsers.add_parser("login", help="Sign in to the dashboard API")
    login_parser.add_argument("--email", help="Account email (prompted if not provided)")
    login_parser.add_argument("--password", help="Password (prompted if not provided)")

    register_parser = subparsers.add_parser("register", help="Create an account and sign in")
    register_parser.add_argument("--name", required=True, help="Display name")
    register_parser.add_argument("--email", required=True, help="Account email")
    register_parser.add_argument("--password", help="Password (prompted if not provided)")
    register_parser.add_argument("--role", choices=[r.value for r in Role], help="Requested role")

    subparsers.add_parser("logout", help="Sign out and clear the local session")
    subparsers.add_parser("whoami", help="Show the stored session")
    subparsers.add_parser("refresh", help="Exchange the refresh token for new tokens")
    subparsers.add_parser("profile", help="Fetch the signed-in user's profile")

    check_parser = subparsers.add_parser("check", help="Run the route guard for a path")
    check_parser.add_argument("path", help="Route path, e.g. /reports")
    check_parser.add_argument(
        "--role",
        choices=[r.value for r in Role],
        help="Also require this minimum role",
    )

    run_parser = subparsers.add_parser("run", help="Start the Reflex dev server")
    run_parser.add_argument("--env", choices=["dev", "prod"], default="dev")
    run_parser.add_argument("--port", type=int, default=3000, help="Frontend port (default: 3000)")
    run_parser.add_argument("--backend-port", type=int, default=8000, help="Backend port (default: 8000)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    if args.command == "run":
        return cmd_run(args)

    try:
        runtime = _build_runtime(args.config)
    except BizDashConfigError as e:
        print(f"Config error: {e.message}", file=sys.stderr)
        return EXIT_USAGE

    commands = {
        "login": cmd_login,
        "register": cmd_register,
        "refresh": cmd_refresh,
        "profile": cmd_profile,
        "logout": cmd_logout,
        "whoami": cmd_whoami,
        "check": cmd_check,
    }
    return asyncio.run(_run_with_runtime(commands[args.command], runtime, args))


async def _run_with_runtime(command, runtime: DashboardRuntime, args: argparse.Namespace) -> int:
    try:
        return await command(runtime, args)
    except BizDashSessionError as e:
        print(f"Session error: {e.message}", file=sys.stderr)
        return EXIT_USAGE
    finally:
        await runtime.ashutdown()


def _build_runtime(config_path: Optional[str]) -> DashboardRuntime:
    config = load_config(config_path)
    storage = None
    if config.session.backend == "memory":
        # An in-memory session would die with the process
        storage = FileStorage(config.session.file_path)
    runtime = DashboardRuntime(config=config, storage=storage)
    runtime.startup()
    return runtime


async def cmd_login(runtime: DashboardRuntime, args: argparse.Namespace) -> int:
    email = args.email or input("Email: ").strip()
    password = args.password or getpass.getpass("Password: ")
    if not email or not password:
        print("Email and password are required", file=sys.stderr)
        return EXIT_USAGE

    try:
        session = await runtime.authorization.login(email, password)
    except BizDashIntegrationError as e:
        print(f"Login failed{_describe_failure(runtime, e)}", file=sys.stderr)
        return EXIT_DENIED

    print(f"Signed in as user {session.user_id} ({session.role.value})")
    return EXIT_OK


async def cmd_register(runtime: DashboardRuntime, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    if not password:
        print("Password is required", file=sys.stderr)
        return EXIT_USAGE

    try:
        session = await runtime.authorization.register(args.name, args.email, password, role=args.role)
    except BizDashIntegrationError as e:
        print(f"Registration failed{_describe_failure(runtime, e)}", file=sys.stderr)
        return EXIT_DENIED

    print(f"Registered and signed in as user {session.user_id} ({session.role.value})")
    return EXIT_OK


async def cmd_logout(runtime: DashboardRuntime, args: argparse.Namespace) -> int:
    runtime.session_store.hydrate()
    await runtime.authorization.logout()
    print("Signed out")
    return EXIT_OK


async def cmd_whoami(runtime: DashboardRuntime, args: argparse.Namespace) -> int:
    session = runtime.session_store.hydrate()
    if session is None:
        print("Not signed in")
        return EXIT_DENIED
    print(f"user: {session.user_id}")
    print(f"role: {session.role.value}")
    return EXIT_OK


async def cmd_refresh(runtime: DashboardRuntime, args: argparse.Namespace) -> int:
    if runtime.session_store.hydrate() is None:
        print("Not signed in")
        return EXIT_DENIED
    session = await runtime.authorization.refresh_tokens()
    if session is None:
        print("Refresh failed, session cleared", file=sys.stderr)
        return EXIT_DENIED
    print(f"Tokens refreshed for user {session.user_id}")
    return EXIT_OK


async def cmd_profile(runtime: DashboardRuntime, args: argparse.Namespace) -> int:
    if runtime.session_store.hydrate() is None:
        print("Not signed in")
        return EXIT_DENIED
    try:
        profile = await runtime.authorization.fetch_profile()
    except BizDashSessionError as e:
        print(e.message, file=sys.stderr)
        return EXIT_DENIED
    except BizDashIntegrationError as e:
        print(f"Profile lookup failed{_describe_failure(runtime, e)}", file=sys.stderr)
        return EXIT_DENIED

    for key in sorted(profile):
        print(f"{key}: {profile[key]}")
    return EXIT_OK


async def cmd_check(runtime: DashboardRuntime, args: argparse.Namespace) -> int:
    """
    Run the guard exactly as a page navigation would, then the optional
    role gate. Prints one line: the decision and, if any, the redirect.
    """
    navigator = RecordingNavigator(current_path=args.path)
    controller = runtime.new_controller(navigator)
    runtime.session_store.hydrate()

    result = await controller.evaluate(args.path)
    if result.is_authorized and args.role:
        result = controller.check_section(args.path, args.role)

    line = f"{args.path}: {result.status.value}"
    if result.reason:
        line += f" ({result.reason})"
    redirect = navigator.take_redirect()
    if redirect:
        line += f" → {redirect}"
    print(line)
    return EXIT_OK if result.is_authorized else EXIT_DENIED


def _describe_failure(runtime: DashboardRuntime, error: BizDashIntegrationError) -> str:
    if error.status_code is None:
        return f": API unreachable ({runtime.config.api.base_url})"
    return f" (HTTP {error.status_code})"


def cmd_run(args: argparse.Namespace) -> int:
    """Start the Reflex dev server (frontend + backend)."""
    cmd = [
        sys.executable, "-m", "reflex", "run",
        "--env", args.env,
        "--frontend-port", str(args.port),
        "--backend-port", str(args.backend_port),
    ]
    try:
        return subprocess.call(cmd)
    except KeyboardInterrupt:
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
