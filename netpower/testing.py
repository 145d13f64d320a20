import array

import usb.core


class CollectUsbDevice(object):
    def __init__(self, state_byte=0x20):
        """
        A drop-in replacement for a pyusb device that records the control transfers.
        :param state_byte: The byte answered to a read state request.
        """
        self.state_byte = state_byte
        self.transfers = []
        self._fail_reads = False
        self._fail_writes = False
        self._fail_open = False
        self._n_open_calls = 0

    def fail_reads(self, fail=True):
        self._fail_reads = fail

    def fail_writes(self, fail=True):
        self._fail_writes = fail

    def fail_open(self, fail=True):
        self._fail_open = fail

    def get_num_open_calls(self):
        return self._n_open_calls

    def get_active_configuration(self):
        self._n_open_calls += 1
        if self._fail_open:
            raise usb.core.USBError('Access denied (insufficient permissions)', errno=13)
        return object()

    def ctrl_transfer(self, bmRequestType, bRequest, wValue=0, wIndex=0, data_or_wLength=None, timeout=None):
        self.transfers.append((bmRequestType, bRequest, wValue, wIndex, data_or_wLength))
        if bmRequestType & 0x80:
            if self._fail_reads:
                raise usb.core.USBError('Pipe error', errno=32)
            return array.array('B', [self.state_byte])[:data_or_wLength]
        if self._fail_writes:
            raise usb.core.USBError('No such device (it may have been disconnected)', errno=19)
        return len(data_or_wLength)

    def reads(self):
        return [t for t in self.transfers if t[0] != 'sleep' and t[0] & 0x80]

    def writes(self):
        return [t for t in self.transfers if t[0] != 'sleep' and not t[0] & 0x80]


class CollectSleep(object):
    def __init__(self, device=None):
        """
        A drop-in replacement for time.sleep that records the delays in between the device transfers.
        """
        self._device = device
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)
        if self._device is not None:
            self._device.transfers.append(('sleep', seconds))
