"""Tests for bugtrail.utils.console module."""

from unittest.mock import patch

import pytest

from bugtrail.utils.console import (
    custom_theme,
    print_error,
    print_header,
    print_info,
    print_success,
    print_warning,
    show_version,
)


class TestCustomTheme:
    """Tests for custom Rich theme."""

    @pytest.mark.parametrize("style", ["error", "success", "warning", "info", "header"])
    def test_theme_defines_style(self, style):
        assert style in custom_theme.styles


class TestPrintFunctions:
    """Tests for print functions."""

    @patch("bugtrail.utils.console.console_err")
    @patch("bugtrail.utils.logging.log_message")
    def test_print_error(self, mock_log, mock_console_err):
        """print_error writes to stderr and logs."""
        print_error("Test error")

        mock_console_err.print.assert_called_once()
        call_args = mock_console_err.print.call_args
        assert "[ERROR]" in call_args[0][0]
        assert "Test error" in call_args[0][0]
        mock_log.assert_called_once_with("ERROR: Test error")

    @pytest.mark.parametrize(
        "func,tag",
        [
            (print_success, "SUCCESS"),
            (print_warning, "WARNING"),
            (print_info, "INFO"),
        ],
    )
    @patch("bugtrail.utils.console.console")
    @patch("bugtrail.utils.logging.log_message")
    def test_stdout_printers(self, mock_log, mock_console, func, tag):
        func("Message")

        call_args = mock_console.print.call_args
        assert f"[{tag}]" in call_args[0][0]
        assert "Message" in call_args[0][0]
        mock_log.assert_called_once_with(f"{tag}: Message")

    @patch("bugtrail.utils.console.console")
    def test_print_header(self, mock_console):
        print_header("Dry run")

        printed = [c[0][0] for c in mock_console.print.call_args_list if c[0]]
        assert any("=== Dry run ===" in text for text in printed)

    @patch("bugtrail.utils.console.console")
    def test_show_version(self, mock_console):
        show_version()

        call_args = mock_console.print.call_args
        assert "BUGTRAIL" in call_args[0][0]
        assert "0.1.0" in call_args[0][0]
