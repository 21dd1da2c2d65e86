"""
OpenClaw Docker Setup

Only requirement: Docker. Deploys the OpenClaw gateway on a VPS or a local
machine. Asks where to deploy (and, for a VPS, the domain), then writes:
  Dockerfile, docker-compose.yml, .env     — in the project directory
  traefik/dynamic/openclaw.yml             — vps only
  ~/.openclaw/{agents,canvas,credentials,cron,devices,extensions,identity}/
  ~/.openclaw/workspace/*.md               — persona/memory templates
  ~/.openclaw/openclaw.json                — gateway config with a fresh token

Usage:
    openclaw-setup [--mode vps --domain example.com] [--yes]
    python -m openclaw_setup [...]

With no arguments every answer is asked interactively.
"""

import argparse
import logging
import os
import platform
import re
import shutil
import subprocess
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError
from rich.text import Text

from . import status
from .artifacts import (
    setup_directories,
    write_compose,
    write_config,
    write_dockerfile,
    write_env,
    write_traefik_routes,
)
from .gateway_token import generate_token
from .models import DEFAULT_SUBDOMAIN, DEFAULT_TIMEZONE, DeploymentMode, RunParameters
from .workspace_templates import write_workspace

logger = logging.getLogger(__name__)

DOCKER_INSTALL_URL = 'https://docs.docker.com/get-docker/'
VERSION_PATTERN = re.compile(r'\d+\.\d+\.\d+')
COMMAND_TIMEOUT = 30

ANSWER_KEYS = ('mode', 'domain', 'email', 'timezone', 'subdomain', 'port', 'project_dir', 'data_dir')
PATH_ANSWER_KEYS = ('project_dir', 'data_dir')

RULE = '=' * 76


class SetupError(Exception):
    """Fatal setup problem; reported as a single [ERR] line, exit code 1."""


class PreflightError(SetupError):
    """Docker is missing or its daemon is unreachable."""


def run_command(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(list(args), capture_output=True, text=True, timeout=COMMAND_TIMEOUT)


def check_docker() -> str:
    """Verify the docker CLI is installed and the daemon answers.

    Returns:
        Detected Docker version string (e.g. '27.3.1')

    Raises:
        PreflightError: If docker is not on PATH or `docker info` fails
    """
    if shutil.which('docker') is None:
        raise PreflightError(f'Docker is required. Install it from {DOCKER_INSTALL_URL}')
    try:
        result = run_command('docker', 'info')
    except (OSError, subprocess.TimeoutExpired) as e:
        raise PreflightError(f'Docker daemon is not running. Start Docker first. ({e})') from e
    if result.returncode != 0:
        logger.debug('docker info failed: %s', result.stderr.strip())
        raise PreflightError('Docker daemon is not running. Start Docker first.')

    try:
        version = run_command('docker', '--version').stdout
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug('docker --version failed: %s', e)
        return 'version unknown'
    match = VERSION_PATTERN.search(version)
    return match.group(0) if match else version.strip()


def has_compose_plugin() -> bool:
    try:
        return run_command('docker', 'compose', 'version').returncode == 0
    except (OSError, subprocess.TimeoutExpired):
        return False


def check_data_dir_permissions(data_dir: Path) -> list[Path]:
    """Find data-root paths the current user cannot write to.

    The gateway container runs as root, so files it creates under the
    bind-mounted data root can end up root-owned. Skipped on Windows.
    """
    if platform.system() == 'Windows':
        return []
    if not data_dir.exists():
        return []

    problem_paths = []
    for path in [data_dir, data_dir / 'workspace', data_dir / 'cron']:
        if path.exists() and not os.access(path, os.W_OK):
            problem_paths.append(path)
    return problem_paths


def warn_permission_issues(data_dir: Path, problem_paths: list[Path]) -> None:
    status.warn(f'Permission issues detected in {data_dir}')
    for path in problem_paths[:3]:
        status.warn(f'  not writable: {path}')
    if len(problem_paths) > 3:
        status.warn(f'  ... and {len(problem_paths) - 3} more')
    status.warn(f'  To fix, run: sudo chown -R $(id -u):$(id -g) {data_dir}')


def load_answers(path: Path) -> dict:
    """Load pre-filled answers from a YAML mapping.

    Raises:
        SetupError: If the file is missing, unparsable, not a mapping, has unknown keys,
            or holds a nested or non-string path value
    """
    try:
        answers = yaml.safe_load(path.read_text(encoding='utf-8'))
    except OSError as e:
        raise SetupError(f'Cannot read answers file {path}: {e.strerror}') from e
    except yaml.YAMLError as e:
        raise SetupError(f'Invalid YAML in answers file {path}: {e}') from e

    if answers is None:
        return {}
    if not isinstance(answers, dict):
        raise SetupError(f'Answers file {path} must contain a mapping')
    unknown = sorted(set(answers) - set(ANSWER_KEYS))
    if unknown:
        raise SetupError(f'Unknown keys in answers file {path}: {unknown}. Valid keys: {list(ANSWER_KEYS)}')
    for key, value in answers.items():
        if isinstance(value, (dict, list)):
            raise SetupError(f'Answers file {path}: {key} must be a single value, not {type(value).__name__}')
        if key in PATH_ANSWER_KEYS and value is not None and not isinstance(value, str):
            raise SetupError(f'Answers file {path}: {key} must be a path string, got {value!r}')
    return answers


def default_data_dir() -> Path:
    return Path(os.environ.get('OPENCLAW_DATA_DIR') or Path.home() / '.openclaw').expanduser()


def read_line(prompt: str) -> str:
    return status.console.input(Text(prompt))


def ask(prompt: str, read=None) -> str:
    read = read or read_line
    return read(prompt).strip()


def select_mode(read=None) -> DeploymentMode:
    """Ask for the deployment target. Anything but '2'/'vps' means local."""
    status.console.print()
    status.console.print('  Where are you deploying OpenClaw?')
    status.console.print('    1) Local machine (single container, localhost only)')
    status.console.print('    2) VPS (Traefik reverse proxy + automatic HTTPS)')
    answer = ask('  Choose [1]: ', read).lower()
    if answer in ('2', 'vps'):
        return DeploymentMode.VPS
    return DeploymentMode.LOCAL


def collect_parameters(args: argparse.Namespace, answers: dict = None, read=None) -> RunParameters:
    """Merge CLI flags, answers file and interactive prompts into RunParameters.

    Precedence: CLI flag > answers file > prompt > default.

    Raises:
        SetupError: If vps mode is selected and no domain is given
        pydantic.ValidationError: If any value is malformed
    """
    values = dict(answers or {})
    for key in ANSWER_KEYS:
        value = getattr(args, key, None)
        if value is not None:
            values[key] = value

    if 'mode' not in values:
        values['mode'] = DeploymentMode.LOCAL if args.yes else select_mode(read)
    if not isinstance(values['mode'], DeploymentMode):
        try:
            values['mode'] = DeploymentMode(str(values['mode']).strip().lower())
        except ValueError:
            raise SetupError(f"Unknown mode '{values['mode']}' (expected 'local' or 'vps')") from None

    if values['mode'] is DeploymentMode.VPS and not args.yes:
        if not values.get('domain'):
            values['domain'] = ask('  Domain (e.g. example.com): ', read)
        if not values['domain']:
            raise SetupError('Domain is required for VPS mode')
        domain = str(values['domain']).strip().lower()
        if 'email' not in values:
            values['email'] = ask(f'  Email for SSL certificates [admin@{domain}]: ', read)
        if 'timezone' not in values:
            values['timezone'] = ask(f'  Timezone [{DEFAULT_TIMEZONE}]: ', read)

    values['project_dir'] = Path(values.get('project_dir') or Path.cwd()).expanduser()
    values['data_dir'] = Path(values.get('data_dir') or default_data_dir()).expanduser()
    return RunParameters(**values)


def run_setup(params: RunParameters, overwrite_workspace: bool = False, templates_dir: Path = None) -> tuple[Path, bool]:
    """Write every artifact for one run.

    Not transactional: a failure part-way leaves earlier files in place.

    Returns:
        (config path written, True if the live config was kept and a template written)
    """
    status.info('Creating directories...')
    setup_directories(params)
    status.ok('Directories created')

    status.info('Writing Dockerfile...')
    write_dockerfile(params, templates_dir)
    status.ok('Dockerfile')

    status.info('Writing docker-compose.yml...')
    write_compose(params)
    status.ok(f'docker-compose.yml ({params.mode.value})')

    if params.is_vps:
        status.info('Writing Traefik fallback route...')
        route_file = write_traefik_routes(params)
        status.ok(f'Traefik route: {route_file.relative_to(params.project_dir)}')

    if write_env(params, templates_dir):
        status.ok('.env')

    status.info('Writing workspace templates...')
    written, _ = write_workspace(params, overwrite=overwrite_workspace, templates_dir=templates_dir)
    status.ok(f'Workspace templates ({len(written)} written)')

    status.info('Writing OpenClaw config...')
    config_path, diverted = write_config(params, generate_token())
    status.ok(f'OpenClaw config: {config_path}')
    return config_path, diverted


def build_summary(params: RunParameters, config_path: Path, diverted: bool) -> list[str]:
    """Next-step instructions for the operator."""
    lines = ['  1. Edit your credentials:']
    if diverted:
        lines.append(f'     {params.config_path} (kept as is)')
        lines.append(f'     Merge new settings from: {config_path}')
    else:
        lines.append(f'     {config_path}')
    lines += [
        '     - Set model provider + API key',
        '     - Set LINE or Telegram tokens',
        '',
        '  2. Start:',
        f'     cd {params.project_dir} && docker compose up -d',
        '',
        '  3. Or use the wizard:',
        '     docker compose run --rm openclaw configure',
        '',
        '  4. Logs:',
        '     docker compose logs -f openclaw',
    ]
    if params.is_vps:
        lines += [
            '',
            '  5. DNS: point an A record for',
            f"     {params.host} at this server's public IP",
            '     (ports 80 and 443 must be reachable for the certificate)',
            '',
            '  6. LINE webhook URL:',
            f'     {params.webhook_url}',
            f'     Remote gateway URL: {params.remote_url}',
        ]
    return lines


def print_summary(params: RunParameters, config_path: Path, diverted: bool) -> None:
    console = status.console
    console.print()
    console.print(RULE)
    console.print(Text('  OpenClaw is ready!', style='green'))
    console.print(RULE)
    console.print()
    console.print(Text('  NEXT STEPS:', style='yellow'))
    console.print()
    for line in build_summary(params, config_path, diverted):
        console.print(Text(line))
    console.print()
    console.print(RULE)
    console.print()


def parse_args(argv: list[str] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Set up OpenClaw with Docker (local or VPS)')
    parser.add_argument('--mode', choices=[m.value for m in DeploymentMode],
                        help='Deployment target (skips the prompt)')
    parser.add_argument('--domain', help='Public domain for vps mode (e.g. example.com)')
    parser.add_argument('--email', help="Let's Encrypt contact email (default: admin@<domain>)")
    parser.add_argument('--timezone', help=f'Container timezone (default: {DEFAULT_TIMEZONE})')
    parser.add_argument('--subdomain', help=f'Gateway subdomain (default: {DEFAULT_SUBDOMAIN})')
    parser.add_argument('--port', type=int, help='Host port for the gateway (default: 18789)')
    parser.add_argument('--answers-file', type=Path,
                        help='YAML file with pre-filled answers')
    parser.add_argument('--project-dir', type=Path,
                        help='Where to write Dockerfile, docker-compose.yml and .env (default: cwd)')
    parser.add_argument('--data-dir', type=Path,
                        help='OpenClaw data root (default: $OPENCLAW_DATA_DIR or ~/.openclaw)')
    parser.add_argument('--overwrite-workspace', action='store_true',
                        help='Replace existing workspace documents with fresh templates')
    parser.add_argument('--yes', '-y', action='store_true',
                        help='Never prompt; use defaults for anything not given')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')
    return parser.parse_args(argv)


def main(argv: list[str] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    status.console.print()
    status.console.print(Text('  OpenClaw Docker Setup', style='cyan'))
    status.console.print('  Only requirement: Docker')
    status.console.print()

    try:
        status.ok(f'Docker {check_docker()}')
        if not has_compose_plugin():
            status.warn("'docker compose' plugin not found; the commands below need it")

        answers = load_answers(args.answers_file) if args.answers_file else {}
        params = collect_parameters(args, answers)

        problem_paths = check_data_dir_permissions(params.data_dir)
        if problem_paths:
            warn_permission_issues(params.data_dir, problem_paths)

        config_path, diverted = run_setup(params, overwrite_workspace=args.overwrite_workspace)
    except ValidationError as e:
        status.err('Invalid setup parameters:')
        for error in e.errors():
            loc = ' -> '.join(str(x) for x in error['loc'])
            status.err(f'  {loc}: {error["msg"]}' if loc else f'  {error["msg"]}')
        return 1
    except SetupError as e:
        status.err(str(e))
        return 1
    except OSError as e:
        status.err(f'Cannot write {e.filename}: {e.strerror}')
        return 1
    except (KeyboardInterrupt, EOFError):
        status.err('Setup cancelled')
        return 1

    print_summary(params, config_path, diverted)
    return 0


if __name__ == '__main__':
    sys.exit(main())
