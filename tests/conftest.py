import itertools

import pytest

from aws_rotate_keys.credentials import AccessKey
from aws_rotate_keys.errors import ProviderError, StoreError


class FakeStore:
    def __init__(self, profiles=None, fail_on=()):
        self.profiles = dict(profiles or {})
        self.fail_on = set(fail_on)
        self.backups = 0

    def get(self, profile):
        return self.profiles.get(profile)

    def set(self, profile, key):
        if profile in self.fail_on:
            raise StoreError(f"{profile} is read-only")
        self.profiles[profile] = key

    def backup(self):
        self.backups += 1


class FakeIAM:
    """One IAM user whose keys live in a dict of id -> secret."""

    def __init__(self, keys=None):
        self.keys = dict(keys or {})
        self.unusable = set()
        self.undeletable = set()
        self.outage = False
        self.calls = []
        self._ids = (f"AKIANEW{n:013d}" for n in itertools.count(1))

    def _auth(self, creds):
        if self.keys.get(creds.access_key_id) != creds.secret_access_key:
            raise ProviderError(f"InvalidClientTokenId: {creds.access_key_id}")

    def list_keys(self, creds):
        self.calls.append(("list", creds.access_key_id))
        if self.outage or creds.access_key_id in self.unusable:
            raise ProviderError("service unavailable")
        self._auth(creds)
        return list(self.keys)

    def create_key(self, creds):
        self.calls.append(("create", creds.access_key_id))
        self._auth(creds)
        key_id = next(self._ids)
        self.keys[key_id] = f"secret-{key_id}"
        return AccessKey(key_id, self.keys[key_id], "alice")

    def delete_key(self, creds, key_id):
        self.calls.append(("delete", creds.access_key_id, key_id))
        self._auth(creds)
        if key_id in self.undeletable:
            raise ProviderError(f"AccessDenied: {key_id}")
        del self.keys[key_id]


OLD = AccessKey("AKIAOLD0000000000001", "old-secret")


@pytest.fixture
def iam():
    return FakeIAM({OLD.id: OLD.secret})


@pytest.fixture
def store():
    return FakeStore({"default": OLD})
