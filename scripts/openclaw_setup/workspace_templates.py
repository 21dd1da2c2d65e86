"""
Workspace template writer.

Seeds the gateway's agent workspace with persona/memory documents and the
cron job queue. Existing files belong to the operator (or the agent, which
edits its own SOUL.md and IDENTITY.md) and are only replaced on request.
"""

import json
from pathlib import Path

from . import status
from .models import DEFAULT_TIMEZONE, RunParameters
from .artifacts import TEMPLATES_DIR

# Workspace template files to generate: (template name, output name)
WORKSPACE_TEMPLATES = [
    ('AGENTS.md.template', 'AGENTS.md'),
    ('SOUL.md.template', 'SOUL.md'),
    ('BOOTSTRAP.md.template', 'BOOTSTRAP.md'),
    ('IDENTITY.md.template', 'IDENTITY.md'),
    ('USER.md.template', 'USER.md'),
    ('TOOLS.md.template', 'TOOLS.md'),
    ('HEARTBEAT.md.template', 'HEARTBEAT.md'),
]

CRON_JOBS_SEED = {'version': 1, 'jobs': []}


def build_workspace_context(params: RunParameters) -> dict:
    if params.timezone != DEFAULT_TIMEZONE:
        timezone_hint = params.timezone
    else:
        timezone_hint = '*(e.g., Asia/Bangkok)*'
    return {'TIMEZONE_HINT': timezone_hint}


def render_simple_template(template_path: Path, context: dict) -> str:
    """Render a template by replacing {{KEY}} placeholders with context values."""
    content = template_path.read_text(encoding='utf-8')
    for key, value in context.items():
        content = content.replace('{{' + key + '}}', str(value))
    return content


def write_if_absent(path: Path, content: str, overwrite: bool = False) -> bool:
    """Write content unless the file exists. Returns True if written."""
    if path.exists() and not overwrite:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')
    return True


def write_workspace(
    params: RunParameters,
    overwrite: bool = False,
    templates_dir: Path = None,
) -> tuple[list[Path], list[Path]]:
    """Write workspace documents and the cron jobs seed.

    Args:
        params: Run parameters
        overwrite: Replace existing documents (factory reset)
        templates_dir: Root templates directory (default: the package's templates/)

    Returns:
        (written paths, skipped paths)
    """
    templates_dir = templates_dir or TEMPLATES_DIR
    context = build_workspace_context(params)
    written, skipped = [], []

    outputs = [
        (params.workspace_dir / output_name,
         render_simple_template(templates_dir / 'workspace' / template_name, context))
        for template_name, output_name in WORKSPACE_TEMPLATES
    ]
    outputs.append((
        params.data_dir / 'cron' / 'jobs.json',
        json.dumps(CRON_JOBS_SEED, indent=2) + '\n',
    ))

    for path, content in outputs:
        if write_if_absent(path, content, overwrite=overwrite):
            written.append(path)
        else:
            skipped.append(path)

    if skipped:
        names = ', '.join(p.name for p in skipped)
        status.warn(f'Kept existing workspace files: {names} (use --overwrite-workspace to reset)')
    return written, skipped
