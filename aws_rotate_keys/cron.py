"""Register a daily key rotation in the current user's crontab.

Run once after installing the package. The minute is picked at random so that
many hosts sharing one AWS account do not all rotate at the same moment.
"""

import logging
import os
import random
import shutil
import subprocess
import sys

from . import config

logger = logging.getLogger(__name__)


def cron_line(command=None, hour=None, minute=None):
    command = command or shutil.which(config.CRON_COMMAND) or config.CRON_COMMAND
    hour = config.CRON_HOUR if hour is None else hour
    minute = random.randint(0, 59) if minute is None else minute
    return f"{minute} {hour} * * * {command}"


def read_crontab():
    result = subprocess.run(["crontab", "-l"], capture_output=True, text=True)
    if result.returncode != 0:
        # "no crontab for <user>" is reported as a failure
        if "no crontab" in result.stderr.lower():
            return ""
        raise subprocess.CalledProcessError(
            result.returncode, result.args, result.stdout, result.stderr
        )
    return result.stdout


def already_installed(crontab, command=config.CRON_COMMAND):
    for line in crontab.splitlines():
        line = line.strip()
        if line and not line.startswith("#") and command in line:
            return True
    return False


def install(command=None, hour=None):
    command = command or shutil.which(config.CRON_COMMAND) or config.CRON_COMMAND
    crontab = read_crontab()
    if already_installed(crontab, os.path.basename(command)):
        logger.info("Key rotation is already scheduled in the crontab")
        return False

    line = cron_line(command, hour)
    if crontab and not crontab.endswith("\n"):
        crontab += "\n"
    subprocess.run(["crontab", "-"], input=crontab + line + "\n", text=True, check=True)
    logger.info(f"Scheduled key rotation: {line}")
    return True


def main():
    logging.basicConfig(level=logging.INFO, format=config.LOG_FORMAT)
    try:
        install()
    except (OSError, subprocess.CalledProcessError) as e:
        logging.error(f"Could not update the crontab: {e}")
        return 1
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
