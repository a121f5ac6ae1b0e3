"""Shared fixtures for reqcli tests."""

import json
import os

import pytest
from click.testing import CliRunner

from reqcli import core
from reqcli.executor import HttpResponse


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def global_reqcli_dir(tmp_path, monkeypatch):
    """Override the global ~/.reqcli directory to a temp location."""
    fake_global = tmp_path / "fake_home" / ".reqcli"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(core, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(core, "GLOBAL_CONFIG", fake_global / "config.yaml")
    return fake_global


@pytest.fixture
def tmp_project(tmp_path, global_reqcli_dir):
    original = os.getcwd()
    project = tmp_path / "project"
    project.mkdir()
    os.chdir(project)
    yield project
    os.chdir(original)


def make_response(
    status_code=200,
    body=None,
    headers=None,
    url="http://localhost:3000/",
    reason="OK",
    content=None,
):
    """Factory for HttpResponse objects.

    dict/list bodies are JSON-encoded and get a JSON Content-Type unless
    headers are given.
    """
    if content is None:
        if isinstance(body, dict | list):
            content = json.dumps(body).encode()
            if headers is None:
                headers = [("Content-Type", "application/json")]
        else:
            content = (body or "").encode()
    if isinstance(headers, dict):
        headers = list(headers.items())
    return HttpResponse(
        status_code=status_code,
        reason=reason,
        headers=headers or [],
        content=content,
        url=url,
        elapsed_ms=42.0,
    )
