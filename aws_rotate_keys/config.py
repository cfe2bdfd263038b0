import os

# CONFIGURABLE PARAMETERS
# Each value can be overridden from the environment, which is how cron runs set them.

CREDENTIALS_FILE = os.environ.get(
    "AWS_SHARED_CREDENTIALS_FILE", os.path.join("~", ".aws", "credentials")
)
DEFAULT_PROFILE = "default"

VERIFY_ATTEMPTS = int(os.environ.get("AWS_ROTATE_KEYS_VERIFY_ATTEMPTS", "20"))
VERIFY_DELAY_SECONDS = float(os.environ.get("AWS_ROTATE_KEYS_VERIFY_DELAY", "3"))

CRON_HOUR = int(os.environ.get("AWS_ROTATE_KEYS_CRON_HOUR", "10"))
CRON_COMMAND = "aws-rotate-keys"

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
SYSLOG_ADDRESS = "/dev/log"
