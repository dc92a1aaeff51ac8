"""Tests for the Frida client."""

import pytest
from unittest.mock import MagicMock, Mock, patch

from appcrypt.device.frida_client import (
    QUERY_SCRIPT,
    FridaClient,
    FridaDeviceInfo,
    ScriptSession,
    load_query_script,
)
from appcrypt.exceptions import (
    AppNotFoundError,
    FridaConnectionError,
    FridaNotInstalledError,
    JailbreakRequiredError,
    ProcessNotFoundError,
    ScriptError,
)


JAILBROKEN_PARAMS = {
    "access": "full",
    "platform": "darwin",
    "arch": "arm64",
    "os": {"id": "ios", "version": "16.5"},
}


def make_frida(device: Mock) -> Mock:
    """Create a mock frida module returning device for USB lookups."""
    frida = Mock()
    frida.ServerNotRunningError = type("ServerNotRunningError", (Exception,), {})
    frida.TimedOutError = type("TimedOutError", (Exception,), {})
    frida.InvalidArgumentError = type("InvalidArgumentError", (Exception,), {})
    frida.get_usb_device.return_value = device
    frida.get_device.return_value = device
    return frida


@pytest.fixture
def mock_device() -> Mock:
    device = Mock()
    device.id = "00008030-12345678"
    device.name = "iPhone"
    device.type = "usb"
    device.query_system_parameters.return_value = JAILBROKEN_PARAMS
    return device


@pytest.fixture
def client(mock_device: Mock) -> FridaClient:
    client = FridaClient()
    client._device = mock_device
    return client


class TestFridaDeviceInfo:
    """Test FridaDeviceInfo."""

    def test_from_frida_device(self, mock_device):
        """Should read access, platform, arch and os id."""
        info = FridaDeviceInfo.from_frida_device(mock_device, JAILBROKEN_PARAMS)

        assert info.id == "00008030-12345678"
        assert info.type == "usb"
        assert info.access == "full"
        assert info.os == "ios"
        assert info.is_jailbroken_ios is True

    @pytest.mark.parametrize(
        "override",
        [
            {"access": "limited"},
            {"platform": "linux"},
            {"arch": "arm"},
            {"os": {"id": "android"}},
        ],
    )
    def test_not_jailbroken_ios(self, mock_device, override):
        """Should require every parameter to match."""
        params = {**JAILBROKEN_PARAMS, **override}

        info = FridaDeviceInfo.from_frida_device(mock_device, params)

        assert info.is_jailbroken_ios is False

    def test_without_params(self, mock_device):
        """Should default to empty strings."""
        info = FridaDeviceInfo.from_frida_device(mock_device)

        assert info.access == ""
        assert info.is_jailbroken_ios is False


class TestFridaClientConnect:
    """Test FridaClient connection methods."""

    @patch("appcrypt.device.frida_client._get_frida")
    def test_connect_usb(self, mock_get_frida, mock_device):
        """Should use the first USB device by default."""
        frida = make_frida(mock_device)
        mock_get_frida.return_value = frida

        client = FridaClient()
        result = client.connect()

        assert result is client
        assert client.is_connected
        frida.get_usb_device.assert_called_once_with(timeout=5)

    @patch("appcrypt.device.frida_client._get_frida")
    def test_connect_device_id(self, mock_get_frida, mock_device):
        """Should look up a specific device."""
        frida = make_frida(mock_device)
        mock_get_frida.return_value = frida

        FridaClient(device_id="abc").connect()

        frida.get_device.assert_called_once_with("abc")

    @patch("appcrypt.device.frida_client._get_frida")
    def test_connect_remote(self, mock_get_frida, mock_device):
        """Should add a remote device when host is set."""
        frida = make_frida(mock_device)
        frida.get_device_manager.return_value.add_remote_device.return_value = mock_device
        mock_get_frida.return_value = frida

        FridaClient(host="localhost:27042").connect()

        frida.get_device_manager.return_value.add_remote_device.assert_called_once_with(
            "localhost:27042"
        )

    @patch("appcrypt.device.frida_client._get_frida")
    def test_connect_timeout(self, mock_get_frida, mock_device):
        """Should wrap Frida timeouts."""
        frida = make_frida(mock_device)
        frida.get_usb_device.side_effect = frida.TimedOutError("timeout")
        mock_get_frida.return_value = frida

        with pytest.raises(FridaConnectionError) as exc_info:
            FridaClient().connect()

        assert "timed out" in str(exc_info.value).lower()

    @patch("appcrypt.device.frida_client._get_frida")
    def test_connect_server_not_running(self, mock_get_frida, mock_device):
        """Should explain a missing frida-server."""
        frida = make_frida(mock_device)
        frida.get_usb_device.side_effect = frida.ServerNotRunningError("nope")
        mock_get_frida.return_value = frida

        with pytest.raises(FridaConnectionError) as exc_info:
            FridaClient().connect()

        assert "not running" in str(exc_info.value)

    @patch("appcrypt.device.frida_client._get_frida")
    def test_context_manager(self, mock_get_frida, mock_device):
        """Should connect on enter and forget the device on exit."""
        mock_get_frida.return_value = make_frida(mock_device)

        with FridaClient() as client:
            assert client.is_connected

        assert not client.is_connected

    def test_device_requires_connection(self):
        """Accessing device before connect should raise."""
        with pytest.raises(FridaConnectionError):
            FridaClient().device

    def test_frida_not_installed(self):
        """Should raise FridaNotInstalledError when import fails."""
        with patch("appcrypt.device.frida_client._frida", None), patch.dict(
            "sys.modules", {"frida": None}
        ):
            with pytest.raises(FridaNotInstalledError):
                FridaClient().connect()


class TestFridaClientQueries:
    """Test device queries."""

    def test_require_jailbroken(self, client):
        """Should return device info for a jailbroken device."""
        info = client.require_jailbroken()

        assert info.is_jailbroken_ios

    def test_require_jailbroken_raises(self, client, mock_device):
        """Should raise for a non-jailbroken device."""
        mock_device.query_system_parameters.return_value = {
            **JAILBROKEN_PARAMS,
            "access": "limited",
        }

        with pytest.raises(JailbreakRequiredError) as exc_info:
            client.require_jailbroken()

        assert "access=limited" in str(exc_info.value)

    def test_device_info_failure(self, client, mock_device):
        """Should wrap parameter query failures."""
        mock_device.query_system_parameters.side_effect = RuntimeError("boom")

        with pytest.raises(FridaConnectionError):
            client.device_info()

    def test_list_applications(self, client, mock_device, mock_frida_app):
        """Should convert Frida apps with full scope."""
        mock_device.enumerate_applications.return_value = [mock_frida_app]

        apps = client.list_applications()

        assert [a.identifier for a in apps] == ["com.example.MainApp"]
        assert apps[0].version == "1.2.3"
        mock_device.enumerate_applications.assert_called_once_with(scope="full")

    def test_get_application(self, client, mock_device, mock_frida_app):
        """Should find an app by bundle ID."""
        mock_device.enumerate_applications.return_value = [mock_frida_app]

        app = client.get_application("com.example.MainApp")

        assert app.name == "MainApp"

    def test_get_application_not_found(self, client, mock_device):
        """Should raise AppNotFoundError for unknown bundle IDs."""
        mock_device.enumerate_applications.return_value = []

        with pytest.raises(AppNotFoundError):
            client.get_application("com.example.Missing")

    def test_get_process_id(self, client, mock_device):
        """Should find a process by name."""
        process = Mock()
        process.name = "chronod"
        process.pid = 321
        mock_device.enumerate_processes.return_value = [process]

        assert client.get_process_id("chronod") == 321

    def test_get_process_id_not_found(self, client, mock_device):
        """Should raise ProcessNotFoundError for missing processes."""
        mock_device.enumerate_processes.return_value = []

        with pytest.raises(ProcessNotFoundError):
            client.get_process_id("chronod")


class TestScripts:
    """Test script loading and RPC calls."""

    def test_load_script(self, client, mock_device):
        """Should attach, create and load the script."""
        session = mock_device.attach.return_value

        script = client.load_script("rpc.exports = {}", "runningboardd")

        mock_device.attach.assert_called_once_with("runningboardd")
        session.create_script.assert_called_once_with("rpc.exports = {}")
        session.create_script.return_value.load.assert_called_once()
        assert isinstance(script, ScriptSession)

    def test_load_script_attach_failure(self, client, mock_device):
        """Should raise ScriptError when attaching fails."""
        mock_device.attach.side_effect = RuntimeError("no such process")

        with pytest.raises(ScriptError):
            client.load_script("", "runningboardd")

    def test_load_script_load_failure_detaches(self, client, mock_device):
        """Should detach when the script fails to load."""
        session = mock_device.attach.return_value
        session.create_script.return_value.load.side_effect = RuntimeError("syntax")

        with pytest.raises(ScriptError):
            client.load_script("bad", "runningboardd")

        session.detach.assert_called_once()

    def test_call_export(self):
        """Should call the named export."""
        script = MagicMock()
        script.exports_sync.main.return_value = "MainApp"

        session = ScriptSession(Mock(), script, "runningboardd")

        assert session.call("main", "com.example.MainApp") == "MainApp"
        script.exports_sync.main.assert_called_once_with("com.example.MainApp")

    def test_call_failure_raises_script_error(self):
        """Should wrap export failures."""
        script = MagicMock()
        script.exports_sync.extensions.side_effect = RuntimeError("bundle not found")

        session = ScriptSession(Mock(), script, "runningboardd")

        with pytest.raises(ScriptError) as exc_info:
            session.call("extensions", "x")

        assert "bundle not found" in str(exc_info.value)

    def test_close_unloads_and_detaches(self):
        """Should unload the script and detach, even if unload fails."""
        frida_session = Mock()
        script = Mock()
        script.unload.side_effect = RuntimeError("gone")

        with ScriptSession(frida_session, script, "runningboardd"):
            pass

        script.unload.assert_called_once()
        frida_session.detach.assert_called_once()

    def test_load_query_script(self, client, mock_device):
        """Should load the bundled query script into runningboardd."""
        session = mock_device.attach.return_value

        load_query_script(client)

        mock_device.attach.assert_called_once_with("runningboardd")
        source = session.create_script.call_args[0][0]
        assert "rpc.exports.extensions" in source
        assert "rpc.exports.main" in source

    def test_query_script_is_packaged(self):
        """The query script should ship with the package."""
        assert QUERY_SCRIPT.is_file()
