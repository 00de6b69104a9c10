"""Runs the examples embedded in module docstrings."""

import doctest

import pytest

from vault_backup.sync import exclusion, rsync, stream


@pytest.mark.parametrize("module", [exclusion, rsync, stream], ids=lambda m: m.__name__)
def test_docstring_examples(module):
    result = doctest.testmod(module)
    assert result.attempted > 0
    assert result.failed == 0
