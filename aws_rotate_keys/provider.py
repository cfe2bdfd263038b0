import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .credentials import AccessKey
from .errors import ProviderError

logger = logging.getLogger(__name__)


class IAMProvider:
    """IAM access key calls made as whichever identity owns the given credentials.

    No UserName is passed to IAM, so every call applies to the caller's own user.
    """

    def __init__(self, session_factory=boto3.Session, region_name=None):
        self.session_factory = session_factory
        self.region_name = region_name

    def _client(self, creds):
        session = self.session_factory(
            aws_access_key_id=creds.access_key_id,
            aws_secret_access_key=creds.secret_access_key,
            region_name=self.region_name,
        )
        return session.client("iam")

    def list_keys(self, creds):
        try:
            iam = self._client(creds)
            paginator = iam.get_paginator("list_access_keys")
            key_ids = []
            for page in paginator.paginate():
                key_ids.extend(k["AccessKeyId"] for k in page["AccessKeyMetadata"])
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(f"Could not list access keys: {e}") from e
        return key_ids

    def create_key(self, creds):
        try:
            response = self._client(creds).create_access_key()
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(f"Could not create access key: {e}") from e
        key = response.get("AccessKey", {})
        return AccessKey(
            key.get("AccessKeyId", ""),
            key.get("SecretAccessKey", ""),
            key.get("UserName"),
        )

    def delete_key(self, creds, key_id):
        try:
            self._client(creds).delete_access_key(AccessKeyId=key_id)
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(f"Could not delete access key {key_id}: {e}") from e
        logger.debug(f"Deleted access key {key_id}")
