import importlib

import pytest


@pytest.mark.parametrize("module", [
    "provctl.cli",
    "provctl.api.main",
    "provctl.commands.apply",
    "provctl.modules.certificates",
    "provctl.modules.engine.executor",
])
def test_entry_points_import(module):
    importlib.import_module(module)
