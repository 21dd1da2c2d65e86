"""
OpenClaw deployment artifact writers.

Writes, for one RunParameters value:
- data-root directory layout (~/.openclaw/...)
- Dockerfile                        (always overwritten)
- docker-compose.yml                (always overwritten, local or vps variant)
- traefik/dynamic/openclaw.yml      (vps only, always overwritten)
- .env                              (skipped if present)
- openclaw.json                     (diverted to openclaw.json.template if present)

The compose file, Traefik routes and openclaw.json are built as Python data
and serialized, so operator input is never spliced into YAML or JSON text.
"""

import json
from pathlib import Path

import yaml
from jinja2 import FileSystemLoader
from jinja2.sandbox import SandboxedEnvironment

from . import status
from .models import GATEWAY_PORT, RunParameters

TEMPLATES_DIR = Path(__file__).resolve().parent / 'templates'

BASE_IMAGE = 'node:22-slim'
TRAEFIK_IMAGE = 'traefik:v3.1'
CERT_RESOLVER = 'letsencrypt'
CONTAINER_DATA_DIR = '/root/.openclaw'

# Data-root subdirectories, relative to RunParameters.data_dir
DATA_DIRS = [
    'agents/main',
    'canvas',
    'credentials',
    'cron/runs',
    'devices',
    'extensions',
    'identity',
    'workspace/memory',
]

# Reverse proxy directories, relative to RunParameters.traefik_dir (vps only)
TRAEFIK_DIRS = ['dynamic', 'letsencrypt']

# Messaging channels shipped disabled with placeholder credentials
CHANNELS = {
    'line': {
        'channelAccessToken': 'YOUR_LINE_CHANNEL_ACCESS_TOKEN',
        'channelSecret': 'YOUR_LINE_CHANNEL_SECRET',
        'enabled': False,
        'webhookPath': '/webhook/line',
        'dmPolicy': 'pairing',
    },
    'telegram': {
        'enabled': False,
        'botToken': 'YOUR_TELEGRAM_BOT_TOKEN',
        'dmPolicy': 'pairing',
    },
}


def template_environment(templates_dir: Path = None) -> SandboxedEnvironment:
    return SandboxedEnvironment(
        loader=FileSystemLoader(templates_dir or TEMPLATES_DIR),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def dump_yaml(data: dict) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)


def setup_directories(params: RunParameters) -> list[Path]:
    """Create the data-root layout (and Traefik directories in vps mode).

    Safe to call repeatedly; existing directories are left alone.

    Returns:
        List of directories that now exist
    """
    directories = [params.data_dir / rel for rel in DATA_DIRS]
    if params.is_vps:
        directories += [params.traefik_dir / rel for rel in TRAEFIK_DIRS]
    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)
    return directories


def render_dockerfile(templates_dir: Path = None) -> str:
    """Render the gateway Dockerfile. Content does not depend on the run."""
    template = template_environment(templates_dir).get_template('Dockerfile.j2')
    return template.render(base_image=BASE_IMAGE, gateway_port=GATEWAY_PORT)


def write_dockerfile(params: RunParameters, templates_dir: Path = None) -> Path:
    path = params.project_dir / 'Dockerfile'
    path.write_text(render_dockerfile(templates_dir), encoding='utf-8')
    return path


def router_rule(params: RunParameters) -> str:
    return f'Host(`{params.host}`)'


def build_gateway_service(params: RunParameters) -> dict:
    """docker-compose service for the gateway, published on loopback only."""
    service = {
        'build': '.',
        'restart': 'unless-stopped',
        'ports': [f'127.0.0.1:${{OPENCLAW_PORT:-{params.port}}}:{GATEWAY_PORT}'],
        'volumes': [f'{params.data_dir}:{CONTAINER_DATA_DIR}'],
    }
    if params.is_vps:
        service['environment'] = [f'TZ={params.timezone}']
        service['labels'] = [
            'traefik.enable=true',
            f'traefik.http.routers.openclaw.rule={router_rule(params)}',
            'traefik.http.routers.openclaw.entrypoints=websecure',
            f'traefik.http.routers.openclaw.tls.certresolver={CERT_RESOLVER}',
            f'traefik.http.services.openclaw.loadbalancer.server.port={GATEWAY_PORT}',
        ]
    return service


def build_traefik_service(params: RunParameters) -> dict:
    """docker-compose service for Traefik with Let's Encrypt HTTP challenge."""
    return {
        'image': TRAEFIK_IMAGE,
        'restart': 'unless-stopped',
        'command': [
            '--providers.docker=true',
            '--providers.docker.exposedbydefault=false',
            '--providers.file.directory=/etc/traefik/dynamic',
            '--providers.file.watch=true',
            '--entrypoints.web.address=:80',
            '--entrypoints.web.http.redirections.entrypoint.to=websecure',
            '--entrypoints.web.http.redirections.entrypoint.scheme=https',
            '--entrypoints.websecure.address=:443',
            f'--certificatesresolvers.{CERT_RESOLVER}.acme.httpchallenge=true',
            f'--certificatesresolvers.{CERT_RESOLVER}.acme.httpchallenge.entrypoint=web',
            f'--certificatesresolvers.{CERT_RESOLVER}.acme.email={params.email}',
            f'--certificatesresolvers.{CERT_RESOLVER}.acme.storage=/letsencrypt/acme.json',
        ],
        'ports': ['80:80', '443:443'],
        'volumes': [
            '/var/run/docker.sock:/var/run/docker.sock:ro',
            './traefik/letsencrypt:/letsencrypt',
            './traefik/dynamic:/etc/traefik/dynamic:ro',
        ],
    }


def build_compose(params: RunParameters) -> dict:
    services = {}
    if params.is_vps:
        services['traefik'] = build_traefik_service(params)
    services['openclaw'] = build_gateway_service(params)
    if params.is_vps:
        services['openclaw']['depends_on'] = ['traefik']
    return {'services': services}


def write_compose(params: RunParameters) -> Path:
    path = params.project_dir / 'docker-compose.yml'
    path.write_text(dump_yaml(build_compose(params)), encoding='utf-8')
    return path


def build_traefik_routes(params: RunParameters) -> dict:
    """File-provider route mirroring the compose labels.

    Used when Traefik's Docker provider cannot see the gateway container.
    """
    return {
        'http': {
            'routers': {
                'openclaw-fallback': {
                    'rule': router_rule(params),
                    'entryPoints': ['websecure'],
                    'service': 'openclaw-fallback',
                    'tls': {'certResolver': CERT_RESOLVER},
                },
            },
            'services': {
                'openclaw-fallback': {
                    'loadBalancer': {
                        'servers': [{'url': f'http://openclaw:{GATEWAY_PORT}'}],
                    },
                },
            },
        },
    }


def write_traefik_routes(params: RunParameters) -> Path:
    path = params.traefik_dir / 'dynamic' / 'openclaw.yml'
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_yaml(build_traefik_routes(params)), encoding='utf-8')
    return path


def build_env_values(params: RunParameters) -> dict[str, str]:
    """Key/value pairs written to .env for this run."""
    values = {}
    if params.is_vps:
        values.update({
            'DOMAIN_NAME': params.domain,
            'OPENCLAW_SUBDOMAIN': params.subdomain,
            'SSL_EMAIL': params.email,
            'GENERIC_TIMEZONE': params.timezone,
            'DATA_PATH': str(params.data_dir),
        })
    values['OPENCLAW_PORT'] = str(params.port)
    return values


def render_env(params: RunParameters, templates_dir: Path = None) -> str:
    template = template_environment(templates_dir).get_template('env.j2')
    return template.render(
        mode=params.mode.value,
        vps=params.is_vps,
        domain=params.domain,
        subdomain=params.subdomain,
        email=params.email,
        timezone=params.timezone,
        data_dir=params.data_dir,
        port=params.port,
        gateway_port=GATEWAY_PORT,
    )


def load_env_file(path: Path) -> dict[str, str]:
    """Load key=value pairs from a .env file.

    Ignores comments (#) and empty lines.
    Does not handle variable expansion.
    """
    env_vars = {}
    if not path.exists():
        return env_vars
    for line in path.read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        if '=' in line:
            key, _, value = line.partition('=')
            value = value.strip()
            # Strip surrounding quotes (single or double)
            if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
                value = value[1:-1]
            env_vars[key.strip()] = value
    return env_vars


def env_drift(existing: dict[str, str], wanted: dict[str, str]) -> list[str]:
    """Keys whose value in an existing .env differs from this run's value."""
    return [key for key, value in wanted.items() if key in existing and existing[key] != value]


def write_env(params: RunParameters, templates_dir: Path = None) -> Path | None:
    """Write .env unless one exists.

    Returns:
        Path written, or None if an existing file was kept
    """
    path = params.project_dir / '.env'
    if path.exists():
        status.warn('.env already exists, skipping')
        wanted = build_env_values(params)
        existing = load_env_file(path)
        for key in env_drift(existing, wanted):
            status.warn(f'  .env keeps {key}={existing[key]} (this run: {wanted[key]})')
        return None
    path.write_text(render_env(params, templates_dir), encoding='utf-8')
    return path


def build_openclaw_config(params: RunParameters, token: str) -> dict:
    """Build openclaw.json for the gateway container."""
    gateway = {
        'port': GATEWAY_PORT,
        'mode': 'local',
        'bind': '0.0.0.0',
        'auth': {'mode': 'token', 'token': token},
    }
    if params.is_vps:
        gateway['remote'] = {'url': params.remote_url, 'token': token}

    return {
        'agents': {
            'defaults': {
                'model': {'primary': 'YOUR_PROVIDER/YOUR_MODEL'},
                'workspace': f'{CONTAINER_DATA_DIR}/workspace',
                'compaction': {'mode': 'safeguard'},
                'maxConcurrent': 4,
                'subagents': {'maxConcurrent': 8},
            },
        },
        'channels': {name: dict(settings) for name, settings in CHANNELS.items()},
        'gateway': gateway,
        'skills': {'install': {'nodeManager': 'npm'}},
        'plugins': {
            'entries': {name: {'enabled': settings['enabled']} for name, settings in CHANNELS.items()},
        },
    }


def write_config(params: RunParameters, token: str) -> tuple[Path, bool]:
    """Write openclaw.json, or openclaw.json.template if a live config exists.

    Returns:
        (path written, True if diverted to the template file)
    """
    path = params.config_path
    diverted = path.exists()
    if diverted:
        status.warn(f'{path.name} already exists, template saved as {path.name}.template')
        path = path.with_name(path.name + '.template')
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(build_openclaw_config(params, token), indent=2)
    path.write_text(content + '\n', encoding='utf-8')
    return path, diverted
