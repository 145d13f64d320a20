import argparse
import logging
import sys
import time
from enum import Enum

from netpower.usbpower import NetPowerController, DeviceNotFoundError, DeviceOpenError, TransferError

logger = logging.getLogger(__name__)
log_format = '%(levelname)s: %(filename)s %(funcName)s %(message)s'

REBOOT_DELAY_S = 5

EXIT_OK = 0
EXIT_OFF = 1
EXIT_FAILURE = 2

usage = (
    "Controller for the USB Net Power 8800\n"
    "Usage: {} on|off|toggle|query|reboot")


class Command(Enum):
    ON = 'on'
    OFF = 'off'
    TOGGLE = 'toggle'
    QUERY = 'query'
    REBOOT = 'reboot'
    UNKNOWN = None

    @classmethod
    def parse(cls, text):
        if text is None:
            return cls.UNKNOWN
        _text = text.strip().lower()
        for _command in cls:
            if _command.value == _text:
                return _command
        return cls.UNKNOWN


def _report(out, err, error=None):
    if error is None:
        print("Command succeed", file=out)
        return EXIT_OK
    print("Command failed {}".format(error), file=err)
    return EXIT_FAILURE


def execute(command, controller, out=None, err=None, sleep=time.sleep):
    """
    Run one command against an opened controller and return the process exit code.
    """
    out = sys.stdout if out is None else out
    err = sys.stderr if err is None else err
    try:
        if command == Command.ON:
            controller.write_state(True)
        elif command == Command.OFF:
            controller.write_state(False)
        elif command == Command.TOGGLE:
            controller.write_state(not controller.read_state())
        elif command == Command.QUERY:
            _on = controller.read_state()
            print("Power : {}".format("On" if _on else "Off"), file=out)
            return EXIT_OK if _on else EXIT_OFF
        elif command == Command.REBOOT:
            controller.write_state(False)
            logger.info("Waiting {} seconds before switching on.".format(REBOOT_DELAY_S))
            sleep(REBOOT_DELAY_S)
            controller.write_state(True)
        else:
            raise AssertionError("Invalid command '{}'.".format(command))
    except TransferError as e:
        return _report(out, err, error=e)
    return _report(out, err)


class ArgumentParser(argparse.ArgumentParser):
    """
    Reports malformed arguments to the caller instead of exiting the process.
    """

    def error(self, message):
        raise argparse.ArgumentError(None, message)


def _parse_arguments(argv):
    parser = ArgumentParser(description='Controller for the USB Net Power 8800.', add_help=False)
    parser.add_argument('cmd', nargs='?', default=None, help='One of on, off, toggle, query or reboot.')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log the usb traffic.')
    try:
        args, unknown = parser.parse_known_args(argv)
    except argparse.ArgumentError as e:
        return None, False, [str(e)]
    return args.cmd, args.verbose, unknown


def main(argv=None, controller=None):
    argv = sys.argv if argv is None else argv
    cmd, verbose, unknown = _parse_arguments(argv[1:])

    logging.basicConfig(format=log_format)
    logging.getLogger().setLevel(logging.DEBUG if verbose else logging.WARNING)

    if unknown:
        logger.debug("Ignoring arguments {}.".format(unknown))

    command = Command.parse(cmd)
    if command == Command.UNKNOWN:
        print(usage.format(argv[0]))
        return EXIT_OK

    controller = NetPowerController() if controller is None else controller
    try:
        controller.open()
    except (DeviceNotFoundError, DeviceOpenError) as e:
        return _report(sys.stdout, sys.stderr, error=e)
    return execute(command, controller)


if __name__ == "__main__":
    sys.exit(main())
