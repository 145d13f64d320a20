from netpower.usbpower import NetPowerController, NetPowerError, DeviceNotFoundError, DeviceOpenError, TransferError

__version__ = '1.0.0'
__all__ = ['NetPowerController', 'NetPowerError', 'DeviceNotFoundError', 'DeviceOpenError', 'TransferError']
