"""
Shared fixtures and step definitions for BDD tests.

- runner, backend, context: available to all scenario files in this directory
- backend: the REST transport mocked where the engine imports it, so scenarios
  run the real fetch/mutation code against canned responses
- no_logging: autouse, prevents log file creation and clears the query cache
- 'the output contains' step: shared across all feature files
"""

import pytest
from types import SimpleNamespace
from unittest.mock import patch
from click.testing import CliRunner
from pytest_bdd import then, parsers

from gigcrm.cache.query_cache import cache


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def backend():
    with patch("gigcrm.engine.contracts.api_get") as api_get, \
         patch("gigcrm.engine.contracts.api_post") as api_post, \
         patch("gigcrm.engine.responses.api_put") as api_put, \
         patch("gigcrm.cli.main.lookup_public_ip", return_value="203.0.113.5"):
        api_put.return_value = {"success": True}
        yield SimpleNamespace(get=api_get, post=api_post, put=api_put)


@pytest.fixture
def context():
    """Mutable dict shared between Given/When/Then steps within a scenario."""
    return {}


@pytest.fixture(autouse=True)
def no_logging():
    cache.clear()
    with patch("gigcrm.cli.main.configure_logging"):
        yield
    cache.clear()


@then(parsers.parse('the output contains "{text}"'))
def output_contains(context, text):
    assert text in context["result"].output, (
        f"Expected {text!r} in output:\n{context['result'].output}"
    )
