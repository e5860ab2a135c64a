"""Registry of provider instances per provider type, wired to the env file."""

import logging
import re
import threading
from typing import Callable, Iterator, Mapping

from .dropbox_provider import DropboxProvider
from .env_store import EnvFileStore
from .provider import (
    CREDENTIAL_FIELDS,
    CloudProvider,
    CloudProviderError,
    Credentials,
    FileRecord,
    TokenExpiredError,
)
from .thumbnails import ThumbnailIndex

logger = logging.getLogger(__name__)

PROVIDER_REGISTRY: dict[str, Callable[[], CloudProvider]] = {
    "dropbox": DropboxProvider,
}

_APP_KEY_RE = re.compile(r"([A-Z][A-Z0-9_]*?)_APP_KEY_(\d+)")
_INDEX_SUFFIX_RE = re.compile(r"(.+)_(\d+)")


class ProviderManagerError(Exception):
    """Base class for provider lookup and credential wiring errors."""


class UnsupportedProviderType(ProviderManagerError):
    pass


class ProviderNotFound(ProviderManagerError):
    pass


class IndexOutOfRange(ProviderManagerError):
    pass


class InstanceMissing(ProviderManagerError):
    pass


class InvalidCredentialKey(ProviderManagerError):
    pass


class ProviderManager:
    """Owns every provider instance, keyed by type and dense 0-based index.

    Mutations of one type's list are serialized by a per-type lock. Listing
    results are merged into ``thumbnails``; credentials live only in
    ``store``.
    """

    def __init__(
        self,
        store: EnvFileStore,
        thumbnails: ThumbnailIndex,
        registry: Mapping[str, Callable[[], CloudProvider]] | None = None,
        listing_limit: int = 2000,
    ) -> None:
        self.store = store
        self.thumbnails = thumbnails
        self.registry = dict(registry if registry is not None else PROVIDER_REGISTRY)
        self.listing_limit = listing_limit
        self.providers: dict[str, list[CloudProvider | None]] = {}
        self._initialized = False
        self._init_lock = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # --- Setup ---

    def initialize(self) -> None:
        """Recreate instances for every app key found in the env file. Runs once."""
        with self._init_lock:
            if self._initialized:
                logger.info("ProviderManager already initialized")
                return

            max_index: dict[str, int] = {}
            for key in self.store.keys():
                match = _APP_KEY_RE.fullmatch(key)
                if not match:
                    continue
                provider_type = match.group(1).lower()
                index = int(match.group(2))
                max_index[provider_type] = max(index, max_index.get(provider_type, -1))

            for provider_type, top in max_index.items():
                for index in range(top + 1):
                    try:
                        self.add_provider(provider_type, index)
                    except (ProviderManagerError, CloudProviderError) as exc:
                        logger.warning("Failed to initialize %s instance %d: %s", provider_type, index, exc)

            self._initialized = True
            logger.info("ProviderManager initialized with %d instance(s)", sum(1 for _ in self.instances()))

    def resolve_factory(self, provider_type: str) -> Callable[[], CloudProvider]:
        try:
            return self.registry[provider_type.lower()]
        except KeyError:
            raise UnsupportedProviderType(f"Unsupported provider type: {provider_type}") from None

    # --- Instances ---

    def add_provider(self, provider_type: str, instance_index: int | None = None) -> CloudProvider:
        """Create an instance, authenticate it from the env file and list its files.

        Without ``instance_index`` the instance is appended. With one, the list
        grows with empty slots as needed and the instance takes that slot.
        """
        provider_type = provider_type.lower()
        factory = self.resolve_factory(provider_type)
        if instance_index is not None and instance_index < 0:
            raise IndexOutOfRange(f"Invalid instance index {instance_index}")

        with self._lock_for(provider_type):
            provider = factory()
            instances = self.providers.setdefault(provider_type, [])
            if instance_index is None:
                instances.append(provider)
                index = len(instances) - 1
            else:
                while len(instances) <= instance_index:
                    instances.append(None)
                instances[instance_index] = provider
                index = instance_index

            if self.add_credentials(provider_type, index):
                self._list_into_index(provider_type, index, provider)
            else:
                logger.info("%s instance %d added without credentials", provider_type, index)
            logger.info("Provider instance (%s) added at index %d", provider_type, index)
            return provider

    def add_instance(self, provider_type: str, credentials: Mapping[str, str | None]) -> int:
        """Append an instance, store its credentials and authenticate it as one step.

        Returns the index the instance was given.
        """
        provider_type = provider_type.lower()
        self.resolve_factory(provider_type)
        with self._lock_for(provider_type):
            self.add_provider(provider_type)
            index = self.instance_count(provider_type) - 1
            self.write_env_variables(provider_type, index, credentials)
            if self.add_credentials(provider_type, index):
                self.sync_provider(provider_type, index)
            return index

    def ensure_provider(self, provider_type: str, instance_index: int) -> CloudProvider:
        """Return an existing instance, or append one when ``instance_index`` is the next free slot."""
        provider_type = provider_type.lower()
        self.resolve_factory(provider_type)
        with self._lock_for(provider_type):
            count = self.instance_count(provider_type)
            if instance_index < 0 or instance_index > count:
                raise IndexOutOfRange(
                    f"Invalid instance index {instance_index}. "
                    f"Next free index for {provider_type} is {count}"
                )
            if instance_index == count:
                return self.add_provider(provider_type)
            return self.get_provider(provider_type, instance_index)

    def add_credentials(self, provider_type: str, instance_index: int | None = None) -> bool:
        """Authenticate an instance from the credentials stored for its index."""
        provider_type = provider_type.lower()
        if instance_index is None:
            instance_index = len(self.providers.get(provider_type, [])) - 1
        provider = self.get_provider(provider_type, instance_index)
        credentials = self.read_credentials(provider_type, instance_index)
        authenticated = provider.authenticate(credentials)
        if authenticated:
            provider.lifecycle.restored()
        return authenticated

    def get_provider(self, provider_type: str, instance_index: int) -> CloudProvider:
        instances = self.providers.get(provider_type.lower())
        if not instances:
            raise ProviderNotFound(f"No provider instances found for type: {provider_type}")
        if instance_index < 0 or instance_index >= len(instances):
            raise IndexOutOfRange(
                f"Invalid instance index {instance_index}. "
                f"Available instances: 0-{len(instances) - 1}"
            )
        provider = instances[instance_index]
        if provider is None:
            raise InstanceMissing(
                f"Provider instance {instance_index} for type {provider_type} does not exist"
            )
        return provider

    def instance_count(self, provider_type: str) -> int:
        return len(self.providers.get(provider_type.lower(), []))

    def instances(self) -> Iterator[tuple[str, int, CloudProvider]]:
        """Yield (type, index, provider) for every filled slot."""
        for provider_type, instances in list(self.providers.items()):
            for index, provider in enumerate(list(instances)):
                if provider is not None:
                    yield provider_type, index, provider

    def sync_provider(self, provider_type: str, instance_index: int) -> int:
        """Relist one instance and replace its records in the index.

        A failed listing keeps the records already indexed.
        """
        provider_type = provider_type.lower()
        with self._lock_for(provider_type):
            provider = self.get_provider(provider_type, instance_index)
            files = self._fetch_listing(provider_type, instance_index, provider)
            if files is None:
                return 0
            return self.thumbnails.replace(provider_type, instance_index, files)

    def remove_provider(self, provider_type: str, instance_index: int) -> None:
        """Remove an instance and renumber every higher instance of the type.

        Order matters:

        1. Rewrite the env file: drop the instance's keys and decrement the
           suffix of higher ones. A write failure propagates before anything
           in memory has changed.
        2. Purge the index by the *old* index, shifting higher records down.
        3. Remove the slot from the list, shifting higher instances down.
        """
        provider_type = provider_type.lower()
        with self._lock_for(provider_type):
            instances = self.providers.get(provider_type)
            if not instances:
                raise ProviderNotFound(f"No provider instances found for type: {provider_type}")
            if instance_index < 0 or instance_index >= len(instances):
                raise IndexOutOfRange(
                    f"Invalid instance index {instance_index}. "
                    f"Available instances: 0-{len(instances) - 1}"
                )
            naming = instances[instance_index] or self.resolve_factory(provider_type)()
            self._remove_instance_env_variables(naming, instance_index)
            self.thumbnails.remove_provider(provider_type, instance_index)
            del instances[instance_index]
        logger.info("Provider instance %d (%s) removed", instance_index, provider_type)

    # --- Credentials ---

    def write_env_variables(
        self, provider_type: str, instance_index: int, credentials: Mapping[str, str | None]
    ) -> None:
        """Append the instance's credential lines to the env file."""
        names = self._credential_key_names(provider_type, instance_index, credentials)
        lines = [f"{names[field]}={value}" for field, value in credentials.items() if value is not None]
        self.store.write_lines(lines, append=True)

    def update_env_variables(
        self, provider_type: str, instance_index: int, credentials: Mapping[str, str | None]
    ) -> None:
        """Replace the values of existing credential lines in place.

        Keys not yet in the file are appended so a token is never dropped.
        """
        names = self._credential_key_names(provider_type, instance_index, credentials)
        values = {names[field]: value for field, value in credentials.items() if value is not None}
        missing = [key for key in values if not self.store.has_key(key)]
        if missing:
            logger.info("Appending credential keys not yet on file: %s", ", ".join(missing))
        self.store.set_values(values)
        logger.info(
            "Updated %s credentials for instance %d: %s",
            provider_type, instance_index, ", ".join(credentials),
        )

    def read_credentials(self, provider_type: str, instance_index: int) -> Credentials:
        provider = self.get_provider(provider_type, instance_index)
        patterns = provider.get_env_variable_patterns(instance_index)
        return Credentials(
            app_key=self.store.get_value(patterns.app_key) or "",
            app_secret=self.store.get_value(patterns.app_secret) or "",
            access_token=self.store.get_value(patterns.access_token) or None,
            refresh_token=self.store.get_value(patterns.refresh_token) or None,
        )

    # --- Internal ---

    def _lock_for(self, provider_type: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(provider_type, threading.RLock())

    def _fetch_listing(self, provider_type: str, index: int, provider: CloudProvider) -> list[FileRecord] | None:
        """The instance's files, or None when listing failed."""
        try:
            return provider.list_files("", False, self.listing_limit, index)
        except TokenExpiredError as exc:
            logger.warning("Access token rejected for %s instance %d: %s", provider_type, index, exc)
            provider.lifecycle.token_rejected()
        except CloudProviderError as exc:
            logger.warning("Failed to list files for %s instance %d: %s", provider_type, index, exc)
        return None

    def _list_into_index(self, provider_type: str, index: int, provider: CloudProvider) -> int:
        files = self._fetch_listing(provider_type, index, provider)
        if files is None:
            return 0
        return self.thumbnails.add_thumbnails(files)

    def _credential_key_names(
        self, provider_type: str, instance_index: int, credentials: Mapping[str, str | None]
    ) -> dict[str, str]:
        provider = self.get_provider(provider_type, instance_index)
        if not credentials:
            raise InvalidCredentialKey("No credentials provided")
        names = provider.get_env_variable_patterns(instance_index).as_dict()
        for field in credentials:
            if field not in names:
                raise InvalidCredentialKey(
                    f"Invalid credential key: {field}. Valid keys are: {', '.join(CREDENTIAL_FIELDS)}"
                )
        return names

    def _remove_instance_env_variables(self, provider: CloudProvider, instance_index: int) -> None:
        def rename(key: str) -> str | None:
            match = _INDEX_SUFFIX_RE.fullmatch(key)
            if not match:
                return key
            index = int(match.group(2))
            names = provider.get_env_variable_patterns(index).as_dict()
            field = next((f for f, name in names.items() if name == key), None)
            if field is None or index < instance_index:
                return key
            if index == instance_index:
                return None
            return provider.get_env_variable_patterns(index - 1).as_dict()[field]

        changed = self.store.rewrite_keys(rename)
        logger.info(
            "Rewrote %d credential line(s) after removing %s instance %d",
            changed, provider.provider_type(), instance_index,
        )
