from __future__ import annotations

import inspect
import os

import pytest
import typer.testing


def _patch_clirunner() -> None:
    if "mix_stderr" in inspect.signature(typer.testing.CliRunner).parameters:
        return

    class PatchedCliRunner(typer.testing.CliRunner):
        def __init__(self, *args, **kwargs):  # noqa: ANN002, ANN003
            kwargs.pop("mix_stderr", None)
            super().__init__(*args, **kwargs)

    typer.testing.CliRunner = PatchedCliRunner


_patch_clirunner()


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path) -> None:  # noqa: ANN001
    """Keep developer CUESYNC_* variables and .env files out of the tests."""
    for name in list(os.environ):
        if name.startswith("CUESYNC_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
