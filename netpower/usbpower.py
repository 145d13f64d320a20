import logging

import usb.core
from usb.util import CTRL_IN, CTRL_OUT, CTRL_TYPE_VENDOR, CTRL_RECIPIENT_DEVICE

logger = logging.getLogger(__name__)


class NetPowerError(Exception):
    def __init__(self, vendor, product, msg):
        super(NetPowerError, self).__init__(msg)
        self.vendor = vendor
        self.product = product
        self.message = msg

    def __str__(self):
        return '{:04x}:{:04x} - {}'.format(self.vendor, self.product, self.message)


class DeviceNotFoundError(NetPowerError):
    pass


class DeviceOpenError(NetPowerError):
    pass


class TransferError(NetPowerError):
    pass


class NetPowerController(object):
    """
    USB Net Power 8800, a single switched outlet behind a PL2303 usb id.
    None of the serial port functions are used, the relay is driven by two vendor control transfers.
    """

    NETPOWER_VENDOR_ID = 0x067b
    NETPOWER_PRODUCT_ID = 0x2303

    REQUEST_TYPE_READ = CTRL_IN | CTRL_TYPE_VENDOR | CTRL_RECIPIENT_DEVICE
    REQUEST_TYPE_WRITE = CTRL_OUT | CTRL_TYPE_VENDOR | CTRL_RECIPIENT_DEVICE

    REQUEST_VENDOR = 0x01

    VALUE_READ_STATE = 0x0081
    VALUE_WRITE_STATE = 0x0001

    INDEX_ON = 0xa0
    INDEX_OFF = 0x20

    STATE_ON = 0xa0

    def __init__(self, vendor=NETPOWER_VENDOR_ID, product=NETPOWER_PRODUCT_ID):
        self._vendor = vendor
        self._product = product
        self._device = None

    def find(self):
        return usb.core.find(idVendor=self._vendor, idProduct=self._product)

    def poll(self):
        try:
            return self.find() is not None
        except usb.core.NoBackendError:
            return False

    def is_attached(self):
        return self._device is not None

    def open(self):
        if self.is_attached():
            return
        try:
            _device = self.find()
        except usb.core.NoBackendError as e:
            raise DeviceNotFoundError(self._vendor, self._product, "No usb backend available ({}).".format(e)) from e
        if _device is None:
            raise DeviceNotFoundError(self._vendor, self._product, "Device not found.")

        # Pyusb opens the handle lazily, force it here so permission problems surface before any command.
        try:
            _device.get_active_configuration()
        except usb.core.USBError as e:
            raise DeviceOpenError(self._vendor, self._product,
                                  "Unable to open the device, check the udev rules for this usb id ({}).".format(e)) from e
        logger.info("Attached device vendor={:04x} product={:04x}.".format(self._vendor, self._product))
        self._device = _device

    def _query(self, request, value, index, length):
        assert self.is_attached(), "The device is not attached."
        try:
            return self._device.ctrl_transfer(self.REQUEST_TYPE_READ, request, value, index, length)
        except usb.core.USBError as e:
            raise TransferError(self._vendor, self._product, str(e)) from e

    def _write(self, request, value, index, data):
        assert self.is_attached(), "The device is not attached."
        try:
            return self._device.ctrl_transfer(self.REQUEST_TYPE_WRITE, request, value, index, data)
        except usb.core.USBError as e:
            raise TransferError(self._vendor, self._product, str(e)) from e

    def read_state(self):
        response = self._query(self.REQUEST_VENDOR, self.VALUE_READ_STATE, 0x0000, 1)
        _last = response[-1] if len(response) > 0 else None
        logger.debug("Read state response {}.".format(list(response)))
        return _last == self.STATE_ON

    def write_state(self, state):
        code = self.INDEX_ON if state else self.INDEX_OFF
        logger.debug("Write state {} index=0x{:02x}.".format(bool(state), code))
        self._write(self.REQUEST_VENDOR, self.VALUE_WRITE_STATE, code, [])
