"""Tests for openclaw_setup.workspace_templates."""

import json
import sys
from pathlib import Path

# Add scripts directory to path for imports
SCRIPTS_DIR = Path(__file__).parent.parent / 'scripts'
sys.path.insert(0, str(SCRIPTS_DIR))

from openclaw_setup.models import RunParameters
from openclaw_setup.workspace_templates import (
    WORKSPACE_TEMPLATES,
    render_simple_template,
    write_workspace,
)

DOCUMENTS = ['AGENTS.md', 'SOUL.md', 'BOOTSTRAP.md', 'IDENTITY.md', 'USER.md', 'TOOLS.md', 'HEARTBEAT.md']


def make_params(tmp_path, **overrides):
    values = {'project_dir': tmp_path / 'project', 'data_dir': tmp_path / 'data'}
    values.update(overrides)
    return RunParameters(**values)


class TestRenderSimpleTemplate:
    """Tests for render_simple_template function."""

    def test_replaces_placeholders(self, tmp_path):
        template = tmp_path / 'T.md.template'
        template.write_text('Zone: {{TIMEZONE_HINT}} / {{UNKNOWN}}\n')

        result = render_simple_template(template, {'TIMEZONE_HINT': 'UTC'})

        assert result == 'Zone: UTC / {{UNKNOWN}}\n'


class TestWriteWorkspace:
    """Tests for write_workspace function."""

    def test_writes_all_documents(self, tmp_path):
        params = make_params(tmp_path)

        written, skipped = write_workspace(params)

        assert [name for _, name in WORKSPACE_TEMPLATES] == DOCUMENTS
        for name in DOCUMENTS:
            assert (params.workspace_dir / name).is_file()
        assert skipped == []
        assert len(written) == len(DOCUMENTS) + 1

    def test_document_content(self, tmp_path):
        params = make_params(tmp_path)

        write_workspace(params)

        agents = (params.workspace_dir / 'AGENTS.md').read_text(encoding='utf-8')
        assert agents.startswith('# AGENTS.md - Your Workspace\n')
        soul = (params.workspace_dir / 'SOUL.md').read_text(encoding='utf-8')
        assert '_This file is yours to evolve._' in soul
        heartbeat = (params.workspace_dir / 'HEARTBEAT.md').read_text(encoding='utf-8')
        assert heartbeat.startswith('# HEARTBEAT.md\n')

    def test_cron_jobs_seed(self, tmp_path):
        params = make_params(tmp_path)

        write_workspace(params)

        jobs = json.loads((params.data_dir / 'cron' / 'jobs.json').read_text())
        assert jobs == {'version': 1, 'jobs': []}

    def test_default_timezone_hint(self, tmp_path):
        params = make_params(tmp_path)

        write_workspace(params)

        user = (params.workspace_dir / 'USER.md').read_text(encoding='utf-8')
        assert '- **Timezone:** *(e.g., Asia/Bangkok)*' in user

    def test_configured_timezone_hint(self, tmp_path):
        params = make_params(tmp_path, mode='vps', domain='example.com', timezone='Europe/Berlin')

        write_workspace(params)

        user = (params.workspace_dir / 'USER.md').read_text(encoding='utf-8')
        assert '- **Timezone:** Europe/Berlin' in user
        assert '{{' not in user

    def test_existing_documents_are_kept(self, tmp_path, capsys):
        params = make_params(tmp_path)
        write_workspace(params)
        soul = params.workspace_dir / 'SOUL.md'
        soul.write_text('# SOUL.md - I am Nova\n')
        jobs = params.data_dir / 'cron' / 'jobs.json'
        jobs.write_text('{"version": 1, "jobs": [{"id": "daily"}]}')
        capsys.readouterr()

        written, skipped = write_workspace(params)

        assert written == []
        assert soul in skipped and jobs in skipped
        assert soul.read_text() == '# SOUL.md - I am Nova\n'
        assert 'daily' in jobs.read_text()
        assert '--overwrite-workspace' in capsys.readouterr().out

    def test_missing_documents_are_recreated(self, tmp_path):
        params = make_params(tmp_path)
        write_workspace(params)
        (params.workspace_dir / 'BOOTSTRAP.md').unlink()

        written, skipped = write_workspace(params)

        assert written == [params.workspace_dir / 'BOOTSTRAP.md']
        assert len(skipped) == len(DOCUMENTS)

    def test_overwrite_restores_templates(self, tmp_path):
        params = make_params(tmp_path)
        write_workspace(params)
        soul = params.workspace_dir / 'SOUL.md'
        original = soul.read_text(encoding='utf-8')
        soul.write_text('edited')

        written, skipped = write_workspace(params, overwrite=True)

        assert skipped == []
        assert soul in written
        assert soul.read_text(encoding='utf-8') == original
