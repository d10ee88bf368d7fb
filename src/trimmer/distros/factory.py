"""
Creation of distros from their configuration.

Settings of a `[distros.<name>]` table are passed as keyword arguments to
the plugin class of its `kind`. Two settings reference other distros by name
and are resolved to distro instances: `notarization` (zip and upload distros)
and `distros` (meta distros).
"""

import inspect
import logging
from typing import Any, Dict, List, Mapping, Optional, Set, Type

from ..models import DistroConfig, RunnerConfig
from ..orchestration import DistroBase
from ..system import CredentialStore
from ..tasks import ProgressRegistry
from ..validation import ConfigurationError
from .itch import ItchDistro
from .meta import MetaDistro
from .notarization import NotarizationDistro
from .script import ScriptDistro
from .steam import SteamDistro
from .upload import UploadDistro
from .zip import ZipDistro

logger = logging.getLogger(__name__)

DISTRO_KINDS: Dict[str, Type[DistroBase]] = {
    cls.kind: cls
    for cls in (
        ScriptDistro,
        ZipDistro,
        UploadDistro,
        ItchDistro,
        SteamDistro,
        NotarizationDistro,
        MetaDistro,
    )
}

# Arguments injected by the factory, not configurable per distro
_INJECTED_ARGUMENTS = {"self", "name", "runner", "credentials", "registry", "config", "builds"}


def get_distro_class(kind: str) -> Type[DistroBase]:
    """
    Raises:
        ConfigurationError: If no plugin of the kind exists
    """
    try:
        return DISTRO_KINDS[kind]
    except KeyError:
        raise ConfigurationError(
            f"Unknown distro kind '{kind}', expected one of {sorted(DISTRO_KINDS)}"
        ) from None


def accepted_settings(cls: Type[DistroBase]) -> Set[str]:
    """Names of the settings the plugin class and its bases accept."""
    names: Set[str] = set()
    for klass in cls.__mro__:
        if "__init__" not in vars(klass):
            continue
        for parameter in inspect.signature(klass.__init__).parameters.values():
            if parameter.kind in (parameter.VAR_KEYWORD, parameter.VAR_POSITIONAL):
                continue
            names.add(parameter.name)
        if klass is DistroBase:
            break
    return names - _INJECTED_ARGUMENTS


def create_distros(
    configs: Mapping[str, DistroConfig],
    runner_config: Optional[RunnerConfig] = None,
    credentials: Optional[CredentialStore] = None,
    registry: Optional[ProgressRegistry] = None,
) -> Dict[str, DistroBase]:
    """
    Create all configured distros.

    Distros referenced by other distros are shared: a notarization distro
    used by two zip distros is created only once.

    Returns:
        Distros by name, in configuration order

    Raises:
        ConfigurationError: If a kind, setting or reference is invalid
    """
    factory = _DistroFactory(configs, runner_config, credentials, registry)
    return {name: factory.create(name) for name in configs}


def create_distro(
    name: str,
    configs: Mapping[str, DistroConfig],
    runner_config: Optional[RunnerConfig] = None,
    credentials: Optional[CredentialStore] = None,
    registry: Optional[ProgressRegistry] = None,
) -> DistroBase:
    """
    Create a single configured distro together with the distros it references.

    Raises:
        ConfigurationError: If the distro is not configured or its
            configuration is invalid
    """
    return _DistroFactory(configs, runner_config, credentials, registry).create(name)


class _DistroFactory:

    def __init__(self, configs, runner_config, credentials, registry):
        self.configs = configs
        self.runner_config = runner_config
        self.credentials = credentials
        self.registry = registry
        self._created: Dict[str, DistroBase] = {}
        self._resolving: List[str] = []

    def create(self, name: str) -> DistroBase:
        if name in self._created:
            return self._created[name]
        if name in self._resolving:
            cycle = " -> ".join(self._resolving + [name])
            raise ConfigurationError(f"Distro references form a cycle: {cycle}")
        if name not in self.configs:
            raise ConfigurationError(f"Distro '{name}' is not configured")

        config = self.configs[name]
        cls = get_distro_class(config.kind)

        unknown = set(config.settings) - accepted_settings(cls)
        if unknown:
            raise ConfigurationError(
                f"Unknown settings for {config.kind} distro: {', '.join(sorted(unknown))}", source=name
            )

        self._resolving.append(name)
        try:
            settings = self._resolve_references(config, cls)
        finally:
            self._resolving.pop()

        distro = cls(
            name,
            config=self.runner_config,
            credentials=self.credentials,
            registry=self.registry,
            builds=config.builds,
            **settings,
        )
        self._created[name] = distro
        logger.debug(f"Created {config.kind} distro {name} with {len(config.builds)} build(s)")
        return distro

    def _resolve_references(self, config: DistroConfig, cls: Type[DistroBase]) -> Dict[str, Any]:
        settings = dict(config.settings)

        reference = settings.get("notarization")
        if isinstance(reference, str):
            distro = self.create(reference)
            if not isinstance(distro, NotarizationDistro):
                raise ConfigurationError(
                    f"Distro '{reference}' is not a notarization distro", source=config.name
                )
            settings["notarization"] = distro

        if issubclass(cls, MetaDistro) and "distros" in settings:
            names = settings["distros"]
            if isinstance(names, str) or not isinstance(names, list):
                raise ConfigurationError("distros must be a list of distro names", source=config.name)
            settings["distros"] = [self.create(str(child)) for child in names]

        return settings
