"""
Integration test for CLI command invocation.

This test validates that the CLI can be properly invoked and responds correctly.
"""

import os
import unittest

import pytest

COMMAND = "crosspack"


@pytest.mark.integration
class TestCLIIntegration(unittest.TestCase):
    """CLI integration test class."""

    def test_cli_help_invocation(self) -> None:
        """Test command line interface help flag."""
        rtn = os.system(f"{COMMAND} --help")
        self.assertEqual(0, rtn)

    def test_cli_build_help_invocation(self) -> None:
        rtn = os.system(f"{COMMAND} build --help")
        self.assertEqual(0, rtn)


if __name__ == "__main__":
    unittest.main()
