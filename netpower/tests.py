import pytest
import usb.core

from netpower.testing import CollectUsbDevice
from netpower.usbpower import NetPowerController, DeviceNotFoundError, DeviceOpenError, TransferError


def _attached(monkeypatch, device):
    calls = []

    def _find(**kwargs):
        calls.append(kwargs)
        return device

    monkeypatch.setattr(usb.core, 'find', _find)
    controller = NetPowerController()
    controller.open()
    return controller, calls


def test_open_matches_vendor_and_product(monkeypatch):
    device = CollectUsbDevice()
    controller, calls = _attached(monkeypatch, device)
    assert controller.is_attached()
    assert calls == [dict(idVendor=0x067b, idProduct=0x2303)]
    assert device.get_num_open_calls() == 1
    # Opening is done once, the transfers are not touched.
    controller.open()
    assert len(calls) == 1
    assert device.transfers == []


def test_open_device_not_found(monkeypatch):
    monkeypatch.setattr(usb.core, 'find', lambda **kwargs: None)
    controller = NetPowerController()
    assert not controller.poll()
    with pytest.raises(DeviceNotFoundError) as info:
        controller.open()
    assert not controller.is_attached()
    assert info.value.vendor == 0x067b and info.value.product == 0x2303
    assert str(info.value).startswith('067b:2303')


def test_open_without_backend(monkeypatch):
    def _find(**kwargs):
        raise usb.core.NoBackendError('No backend available')

    monkeypatch.setattr(usb.core, 'find', _find)
    controller = NetPowerController()
    assert not controller.poll()
    with pytest.raises(DeviceNotFoundError):
        controller.open()


def test_open_permission_denied(monkeypatch):
    device = CollectUsbDevice()
    device.fail_open()
    monkeypatch.setattr(usb.core, 'find', lambda **kwargs: device)
    controller = NetPowerController()
    assert controller.poll()
    with pytest.raises(DeviceOpenError) as info:
        controller.open()
    assert 'udev' in str(info.value)
    assert not controller.is_attached()


def test_transfers_require_attached_device():
    controller = NetPowerController()
    with pytest.raises(AssertionError):
        controller.read_state()
    with pytest.raises(AssertionError):
        controller.write_state(True)


def test_read_state_on(monkeypatch):
    device = CollectUsbDevice(state_byte=0xa0)
    controller, _ = _attached(monkeypatch, device)
    assert controller.read_state() is True
    assert device.transfers == [(0xc0, 0x01, 0x0081, 0x0000, 1)]


@pytest.mark.parametrize('state_byte', [0x20, 0x00, 0xa1, 0xff])
def test_read_state_off(monkeypatch, state_byte):
    device = CollectUsbDevice(state_byte=state_byte)
    controller, _ = _attached(monkeypatch, device)
    assert controller.read_state() is False


def test_read_state_uses_last_byte(monkeypatch):
    device = CollectUsbDevice()
    controller, _ = _attached(monkeypatch, device)
    monkeypatch.setattr(device, 'ctrl_transfer', lambda *args: [0x20, 0xa0])
    assert controller.read_state() is True
    monkeypatch.setattr(device, 'ctrl_transfer', lambda *args: [])
    assert controller.read_state() is False


def test_read_state_failure_is_not_off(monkeypatch):
    device = CollectUsbDevice(state_byte=0x20)
    device.fail_reads()
    controller, _ = _attached(monkeypatch, device)
    with pytest.raises(TransferError) as info:
        controller.read_state()
    assert isinstance(info.value.__cause__, usb.core.USBError)


def test_write_state(monkeypatch):
    device = CollectUsbDevice()
    controller, _ = _attached(monkeypatch, device)
    controller.write_state(True)
    controller.write_state(False)
    assert device.writes() == [(0x40, 0x01, 0x0001, 0xa0, []), (0x40, 0x01, 0x0001, 0x20, [])]
    assert device.reads() == []


def test_write_state_failure(monkeypatch):
    device = CollectUsbDevice()
    device.fail_writes()
    controller, _ = _attached(monkeypatch, device)
    with pytest.raises(TransferError) as info:
        controller.write_state(True)
    assert 'No such device' in str(info.value)
    # The transfer was attempted exactly once, there are no retries.
    assert len(device.writes()) == 1
