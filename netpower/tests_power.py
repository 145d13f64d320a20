import logging

import pytest
import usb.core

from netpower.power import Command, execute, main, REBOOT_DELAY_S, EXIT_OK, EXIT_OFF, EXIT_FAILURE
from netpower.testing import CollectUsbDevice, CollectSleep
from netpower.usbpower import NetPowerController

WRITE_ON = (0x40, 0x01, 0x0001, 0xa0, [])
WRITE_OFF = (0x40, 0x01, 0x0001, 0x20, [])
READ_STATE = (0xc0, 0x01, 0x0081, 0x0000, 1)


class MyRecordingController(object):
    def __init__(self):
        self._n_open_calls = 0

    def get_num_open_calls(self):
        return self._n_open_calls

    def open(self):
        self._n_open_calls += 1


@pytest.fixture
def device(monkeypatch):
    _device = CollectUsbDevice()
    monkeypatch.setattr(usb.core, 'find', lambda **kwargs: _device)
    return _device


@pytest.fixture
def controller(device):
    _controller = NetPowerController()
    _controller.open()
    return _controller


def test_command_parse():
    assert Command.parse('on') == Command.ON
    assert Command.parse('OFF') == Command.OFF
    assert Command.parse(' toggle ') == Command.TOGGLE
    assert Command.parse('query') == Command.QUERY
    assert Command.parse('reboot') == Command.REBOOT
    assert Command.parse('cycle') == Command.UNKNOWN
    assert Command.parse('') == Command.UNKNOWN
    assert Command.parse(None) == Command.UNKNOWN


@pytest.mark.parametrize('argv', [
    ['power'],
    ['power', 'bogus'],
    ['power', '--frobnicate'],
    ['power', '--verbose=1'],
    ['power', '-vx'],
    ['power', 'on', '--verbose=yes'],
])
def test_usage_without_transfers(capsys, argv):
    controller = MyRecordingController()
    assert main(argv, controller=controller) == EXIT_OK
    out, err = capsys.readouterr()
    assert out == "Controller for the USB Net Power 8800\nUsage: power on|off|toggle|query|reboot\n"
    assert err == ''
    # The usage does not need the device at all.
    assert controller.get_num_open_calls() == 0


def test_on(capsys, device):
    assert main(['power', 'on']) == EXIT_OK
    assert device.transfers == [WRITE_ON]
    out, err = capsys.readouterr()
    assert out == "Command succeed\n"
    assert err == ''


def test_off(capsys, device):
    assert main(['power', 'off']) == EXIT_OK
    assert device.transfers == [WRITE_OFF]
    assert capsys.readouterr().out == "Command succeed\n"


def test_on_twice_is_not_deduplicated(capsys, device):
    assert main(['power', 'on']) == EXIT_OK
    assert main(['power', 'on']) == EXIT_OK
    assert device.transfers == [WRITE_ON, WRITE_ON]
    assert capsys.readouterr().out == "Command succeed\nCommand succeed\n"


def test_write_failure(capsys, device):
    device.fail_writes()
    assert main(['power', 'off']) == EXIT_FAILURE
    out, err = capsys.readouterr()
    assert out == ''
    assert err.startswith("Command failed ")
    assert 'No such device' in err


@pytest.mark.parametrize('state_byte, expected', [(0xa0, WRITE_OFF), (0x20, WRITE_ON), (0x00, WRITE_ON)])
def test_toggle(capsys, device, controller, state_byte, expected):
    device.state_byte = state_byte
    assert execute(Command.TOGGLE, controller) == EXIT_OK
    assert device.transfers == [READ_STATE, expected]
    assert capsys.readouterr().out == "Command succeed\n"


def test_toggle_read_failure_skips_write(capsys, device, controller):
    device.fail_reads()
    assert execute(Command.TOGGLE, controller) == EXIT_FAILURE
    assert device.writes() == []
    out, err = capsys.readouterr()
    assert out == ''
    assert err.startswith("Command failed ")


def test_query_on(capsys, device):
    device.state_byte = 0xa0
    assert main(['power', 'query']) == EXIT_OK
    assert device.transfers == [READ_STATE]
    assert capsys.readouterr().out == "Power : On\n"


@pytest.mark.parametrize('state_byte', [0x20, 0x00])
def test_query_off(capsys, device, state_byte):
    device.state_byte = state_byte
    assert main(['power', 'query']) == EXIT_OFF
    assert capsys.readouterr().out == "Power : Off\n"


def test_query_failure_is_distinct_from_off(capsys, device):
    device.fail_reads()
    assert main(['power', 'query']) == EXIT_FAILURE
    out, err = capsys.readouterr()
    assert 'Power' not in out
    assert err.startswith("Command failed ")


def test_reboot(capsys, device, controller):
    sleep = CollectSleep(device=device)
    assert execute(Command.REBOOT, controller, sleep=sleep) == EXIT_OK
    assert sleep.delays == [REBOOT_DELAY_S]
    assert REBOOT_DELAY_S == 5
    # Off, the single wait and then on without any transfer in between.
    assert device.transfers == [WRITE_OFF, ('sleep', 5), WRITE_ON]
    assert capsys.readouterr().out == "Command succeed\n"


def test_reboot_off_failure_is_terminal(capsys, device, controller):
    device.fail_writes()
    sleep = CollectSleep(device=device)
    assert execute(Command.REBOOT, controller, sleep=sleep) == EXIT_FAILURE
    assert sleep.delays == []
    assert device.transfers == [WRITE_OFF]
    assert capsys.readouterr().err.startswith("Command failed ")


def test_execute_unknown_is_rejected(device, controller):
    with pytest.raises(AssertionError):
        execute(Command.UNKNOWN, controller)
    assert device.transfers == []


def test_device_not_found(capsys, monkeypatch):
    monkeypatch.setattr(usb.core, 'find', lambda **kwargs: None)
    assert main(['power', 'on']) == EXIT_FAILURE
    out, err = capsys.readouterr()
    assert out == ''
    assert err == "Command failed 067b:2303 - Device not found.\n"


def test_device_open_failure(capsys, device):
    device.fail_open()
    assert main(['power', 'on']) == EXIT_FAILURE
    assert device.transfers == []
    out, err = capsys.readouterr()
    assert out == ''
    assert err.startswith("Command failed 067b:2303 - Unable to open the device")
    assert 'udev' in err
    assert len(err.splitlines()) == 1


def test_verbose_flag(capsys, caplog, device):
    device.state_byte = 0xa0
    assert main(['power', '-v', 'query']) == EXIT_OK
    assert capsys.readouterr().out == "Power : On\n"
    _debug = [r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG]
    assert "Read state response [160]." in _debug


def test_quiet_by_default(capsys, caplog, device):
    assert main(['power', 'on']) == EXIT_OK
    assert capsys.readouterr().out == "Command succeed\n"
    assert [r for r in caplog.records if r.levelno == logging.DEBUG] == []
