"""Tests for diagnostic output."""

import io
import logging

import pytest

from digenv.diagnostics import configure_logging, debug_enabled, write_error


class TestWriteError:

    def test_prefixes_program_name(self):
        stream = io.StringIO()

        write_error("sort (pid 7) exited with status 2", stream)

        assert stream.getvalue() == "digenv: sort (pid 7) exited with status 2\n"

    def test_without_prefix(self):
        stream = io.StringIO()

        write_error("plain", stream, prefix_program=False)

        assert stream.getvalue() == "plain\n"

    def test_defaults_to_stderr(self, capsys):
        write_error("pipe: Too many open files")

        assert capsys.readouterr().err == "digenv: pipe: Too many open files\n"


class TestDebugSwitch:

    @pytest.mark.parametrize('value, expected', [
        ('1', True),
        ('yes', True),
        ('', False),
        ('0', False),
    ])
    def test_debug_enabled(self, value, expected):
        assert debug_enabled({'DIGENV_DEBUG': value}) is expected

    def test_unset(self):
        assert debug_enabled({}) is False

    def test_configure_logging_sets_level(self, monkeypatch):
        root = logging.getLogger()
        monkeypatch.setattr(root, 'handlers', [])
        monkeypatch.setattr(root, 'level', logging.WARNING)
        stream = io.StringIO()

        configure_logging({'DIGENV_DEBUG': '1'}, stream)
        logging.getLogger('digenv.pipeline').debug("spawned %s", 'sort')

        assert root.level == logging.DEBUG
        assert 'digenv.pipeline' in stream.getvalue()
        assert 'spawned sort' in stream.getvalue()
