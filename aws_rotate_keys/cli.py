import argparse
import logging
import logging.handlers
import os
import sys

from botocore.exceptions import BotoCoreError, ClientError

from . import __license__, __title__, __version__, config
from .credentials import CredentialStore
from .errors import ProviderError, RotationError, StoreError
from .provider import IAMProvider
from .rotator import KeyRotator

logger = logging.getLogger(__name__)


def profile_list(value):
    """Split a comma separated profile list, keeping order and dropping repeats."""
    profiles = []
    for name in value.split(","):
        if name and name not in profiles:
            profiles.append(name)
    if not profiles:
        raise argparse.ArgumentTypeError(f"no profile names in {value!r}")
    return tuple(profiles)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog=__title__,
        description="Rotate the IAM access key used by one or more AWS credential profiles.",
    )
    parser.add_argument(
        "-p",
        "--profile",
        "--profiles",
        dest="profiles",
        type=profile_list,
        default=(config.DEFAULT_PROFILE,),
        metavar="NAME[,NAME...]",
        help=f"Comma separated profiles sharing one access key (default: {config.DEFAULT_PROFILE})",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Rotate even if the profiles hold different keys or the user already has extra keys",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Verbose output, including boto")
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"{__title__} {__version__} (License: {__license__})",
    )
    return parser.parse_args(argv)


def setup_logging(debug=False):
    handlers = [logging.StreamHandler(sys.stderr)]
    if not sys.stderr.isatty() and os.path.exists(config.SYSLOG_ADDRESS):
        syslog = logging.handlers.SysLogHandler(address=config.SYSLOG_ADDRESS)
        syslog.setFormatter(logging.Formatter(f"{__title__}: %(levelname)s %(message)s"))
        handlers.append(syslog)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=config.LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    for name in ["boto3", "botocore", "urllib3"]:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.debug)

    rotator = KeyRotator(CredentialStore(), IAMProvider(), force=args.force)
    try:
        result = rotator.rotate(args.profiles)
    except (RotationError, ProviderError, StoreError, ClientError, BotoCoreError) as e:
        logger.error(f"Key rotation failed: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Key rotation failed unexpectedly: {e}")
        return 1

    logger.info(
        f"Rotated {result.old_key_id} -> {result.new_key_id} for {', '.join(result.profiles)}"
    )
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
