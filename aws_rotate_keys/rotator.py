import enum
import logging
import time
from dataclasses import dataclass
from typing import Tuple

from . import config
from .errors import (
    ConfigurationError,
    InconsistentProfilesError,
    KeyCreationError,
    KeyDeletionError,
    PropagationError,
    ProviderError,
    StoreError,
    TooManyKeysError,
    VerificationError,
)

logger = logging.getLogger(__name__)


class RotationState(enum.Enum):
    VALIDATING = "validating"
    AUTHENTICATING = "authenticating"
    COUNT_CHECKING = "count-checking"
    CREATING = "creating"
    VERIFYING = "verifying"
    PROPAGATING = "propagating"
    RETIRING = "retiring"
    DONE = "done"
    ROLLED_BACK = "rolled-back"


@dataclass(frozen=True)
class RotationResult:
    old_key_id: str
    new_key_id: str
    profiles: Tuple[str, ...]
    state: RotationState = RotationState.DONE


class KeyRotator:
    """Replaces the access key shared by a set of profiles with a fresh one.

    The old key is only deleted after the new key has answered an IAM call and
    has been written to every profile. If the new key never works, it is deleted
    again and the profiles are left untouched.
    """

    def __init__(self, store, provider, force=False, attempts=None, delay=None, sleep=time.sleep):
        self.store = store
        self.provider = provider
        self.force = force
        self.attempts = config.VERIFY_ATTEMPTS if attempts is None else attempts
        self.delay = config.VERIFY_DELAY_SECONDS if delay is None else delay
        self.sleep = sleep
        self.state = None

    def _enter(self, state):
        logger.debug(f"Rotation state: {state.value}")
        self.state = state

    def rotate(self, profiles):
        profiles = tuple(profiles)
        if not profiles:
            raise ConfigurationError("No profiles given")

        self._enter(RotationState.VALIDATING)
        old_key = self._resolve(profiles)

        self._enter(RotationState.AUTHENTICATING)
        old_creds = old_key.credentials()
        logger.info(f"Rotating access key {old_key.id} for profiles: {', '.join(profiles)}")

        self._enter(RotationState.COUNT_CHECKING)
        self._check_key_count(old_creds)

        self._enter(RotationState.CREATING)
        new_key = self._create(old_creds)
        new_creds = new_key.credentials()

        self._enter(RotationState.VERIFYING)
        if not self._verify(new_creds):
            self._roll_back(old_creds, new_key)

        self._enter(RotationState.PROPAGATING)
        self._propagate(profiles, new_key)

        self._enter(RotationState.RETIRING)
        try:
            self.provider.delete_key(new_creds, old_key.id)
        except ProviderError as e:
            raise KeyDeletionError(
                f"New key {new_key.id} is in place but old key {old_key.id} could not be deleted: {e}"
            ) from e
        logger.info(f"Deleted old access key {old_key.id}")

        self._enter(RotationState.DONE)
        return RotationResult(old_key.id, new_key.id, profiles)

    def _resolve(self, profiles):
        keys = []
        for profile in profiles:
            try:
                key = self.store.get(profile)
            except StoreError as e:
                raise ConfigurationError(str(e)) from e
            if key is None or not key.complete:
                raise ConfigurationError(f"Profile {profile} has no complete access key pair")
            keys.append(key)

        key_ids = {key.id for key in keys}
        if len(key_ids) > 1:
            message = f"Profiles {', '.join(profiles)} do not share one access key"
            if not self.force:
                raise InconsistentProfilesError(message)
            logger.warning(f"{message}; using the key of profile {profiles[0]}")
        return keys[0]

    def _check_key_count(self, creds):
        try:
            key_ids = self.provider.list_keys(creds)
        except ProviderError as e:
            raise ConfigurationError(f"Could not authenticate with key {creds.access_key_id}: {e}") from e

        if creds.access_key_id not in key_ids:
            raise ConfigurationError(
                f"Key {creds.access_key_id} is not one of its identity's access keys"
            )
        if len(key_ids) <= 1:
            return

        if not self.force:
            raise TooManyKeysError(
                f"Identity already has {len(key_ids)} access keys: {', '.join(key_ids)}"
            )
        # Failures here are logged only; IAM rejects the create step if a key survives.
        for key_id in key_ids:
            if key_id == creds.access_key_id:
                continue
            logger.warning(f"Deleting extra access key {key_id}")
            try:
                self.provider.delete_key(creds, key_id)
            except ProviderError as e:
                logger.warning(f"Ignoring failure to delete extra key {key_id}: {e}")

    def _create(self, creds):
        try:
            key = self.provider.create_key(creds)
        except ProviderError as e:
            raise KeyCreationError(str(e)) from e
        if not key.complete:
            raise KeyCreationError("IAM returned an incomplete access key pair")
        logger.info(f"Created new access key {key.id}")
        return key

    def _verify(self, creds):
        for attempt in range(1, self.attempts + 1):
            try:
                self.provider.list_keys(creds)
            except ProviderError as e:
                logger.debug(f"New key not usable yet (attempt {attempt}/{self.attempts}): {e}")
                if attempt < self.attempts:
                    self.sleep(self.delay)
                continue
            logger.info(f"New access key {creds.access_key_id} verified after {attempt} attempt(s)")
            return True
        return False

    def _roll_back(self, old_creds, new_key):
        logger.error(f"New access key {new_key.id} never became usable, rolling back")
        message = f"New access key {new_key.id} failed verification after {self.attempts} attempts"
        try:
            self.provider.delete_key(old_creds, new_key.id)
        except ProviderError as e:
            logger.error(f"Could not delete unverified key {new_key.id}: {e}")
            message += f"; it could not be deleted and must be removed by hand ({e})"
        else:
            message += "; it has been deleted"
        self._enter(RotationState.ROLLED_BACK)
        raise VerificationError(message)

    def _propagate(self, profiles, key):
        try:
            self.store.backup()
        except StoreError as e:
            logger.warning(f"Continuing without a backup: {e}")
        updated = []
        for profile in profiles:
            try:
                self.store.set(profile, key)
            except StoreError as e:
                raise PropagationError(
                    f"Could not write new key {key.id} to profile {profile} "
                    f"(already updated: {', '.join(updated) or 'none'}): {e}",
                    updated,
                ) from e
            updated.append(profile)
            logger.info(f"Updated profile {profile}")
