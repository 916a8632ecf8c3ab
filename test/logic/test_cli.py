from unittest.mock import AsyncMock, MagicMock, patch

import click.testing
import pytest

from kgrip.cli import cli
from kgrip.util import DEFAULT_HOST_ADDR, DEFAULT_PORT


@pytest.fixture
def cli_runner():
    return click.testing.CliRunner()


def test_tree(cli_runner):
    result = cli_runner.invoke(cli, ["--tree"])
    assert result.exit_code == 0
    for name in ("ports", "send", "serve"):
        assert f"└── {name}" in result.output


class TestServeCLI:
    @patch("kgrip.cli.base.start_server", new_callable=AsyncMock)
    def test_default_values(self, mock_start, cli_runner):
        result = cli_runner.invoke(cli, ["serve"])
        assert result.exit_code == 0
        mock_start.assert_awaited_once_with(
            config_path=None,
            state_path=None,
            log_to_file=True,
            log_to_stdout=True,
            log_path="",
            clear_prev_log=True,
            log_level=None,
            mock=False,
        )

    @patch("kgrip.cli.base.start_server", new_callable=AsyncMock)
    def test_all_arguments(self, mock_start, cli_runner):
        result = cli_runner.invoke(
            cli,
            [
                "serve",
                "--config",
                "/tmp/config.json",
                "--state",
                "/tmp/temp.json",
                "--no-log-to-file",
                "--no-log-to-stdout",
                "--log-path",
                "/tmp/test.log",
                "--no-clear-prev-log",
                "--log-level",
                "DEBUG",
                "--mock",
            ],
        )
        assert result.exit_code == 0
        kwargs = mock_start.await_args.kwargs
        assert kwargs["config_path"] == "/tmp/config.json"
        assert kwargs["state_path"] == "/tmp/temp.json"
        assert kwargs["log_to_file"] is False
        assert kwargs["log_to_stdout"] is False
        assert kwargs["clear_prev_log"] is False
        assert kwargs["log_level"] == "DEBUG"
        assert kwargs["mock"] is True


class TestPortsCLI:
    @patch("kgrip.cli.base.get_hw_ports")
    def test_lists_ports(self, mock_ports, cli_runner):
        mock_ports.return_value = {
            "/dev/ttyUSB0": ("FT230X Basic UART", "USB VID:PID=0403:6015")
        }
        result = cli_runner.invoke(cli, ["ports"])
        assert result.exit_code == 0
        assert "Port: /dev/ttyUSB0" in result.output
        assert "Hardware ID: USB VID:PID=0403:6015" in result.output

    @patch("kgrip.cli.base.get_hw_ports")
    def test_no_ports(self, mock_ports, cli_runner):
        mock_ports.return_value = {}
        result = cli_runner.invoke(cli, ["ports"])
        assert "No COM ports found" in result.output

    @patch("kgrip.cli.base.list_usb_devices")
    def test_usb(self, mock_usb, cli_runner):
        mock_usb.return_value = [
            {
                "path": "/dev/ttyUSB0",
                "vendor_id": "0403",
                "product_id": "6015",
                "description": "FT230X Basic UART",
            }
        ]
        result = cli_runner.invoke(cli, ["ports", "--usb"])
        assert result.exit_code == 0
        assert "Vendor/Product: 0403:6015" in result.output


class TestSendCLI:
    @patch("kgrip.cli.base.close_connection")
    @patch("kgrip.cli.base.collect_statuses")
    @patch("kgrip.cli.base.send_command")
    @patch("kgrip.cli.base.open_connection")
    def test_send(self, mock_open, mock_send, mock_collect, mock_close, cli_runner):
        conn = MagicMock()
        mock_open.return_value = conn
        mock_collect.return_value = [{"message": "device_found"}]

        result = cli_runner.invoke(cli, ["send", "measureStart", "--wait", "2"])
        assert result.exit_code == 0
        mock_open.assert_called_once_with(DEFAULT_HOST_ADDR, DEFAULT_PORT)
        mock_send.assert_called_once_with(conn, "measureStart")
        mock_collect.assert_called_once_with(conn, 2.0)
        mock_close.assert_called_once_with(conn)
        assert "device_found" in result.output

    @patch("kgrip.cli.base.close_connection")
    @patch("kgrip.cli.base.send_command")
    @patch("kgrip.cli.base.open_connection")
    def test_send_failure_closes(self, mock_open, mock_send, mock_close, cli_runner):
        mock_send.side_effect = RuntimeError("boom")
        result = cli_runner.invoke(cli, ["send", "appShow"])
        assert result.exit_code != 0
        mock_close.assert_called_once()

    def test_unknown_command(self, cli_runner):
        result = cli_runner.invoke(cli, ["send", "reboot"])
        assert result.exit_code == 2
