from functools import lru_cache

from .config import settings
from .providers.registry import ProviderRegistry
from .services.actions import ActionDispatcher
from .services.executor import TaskExecutor
from .services.reconciler import MidjourneyReconciler
from .storage.artifacts import LocalArtifactStore
from .storage.repo import Repo


@lru_cache
def get_repo() -> Repo:
    return Repo()


@lru_cache
def get_providers() -> ProviderRegistry:
    return ProviderRegistry(settings)


@lru_cache
def get_artifacts() -> LocalArtifactStore:
    return LocalArtifactStore(settings.artifact_dir, settings.artifact_base_url)


def build_executor() -> TaskExecutor:
    return TaskExecutor(get_repo(), get_providers(), get_artifacts())


def build_reconciler() -> MidjourneyReconciler:
    return MidjourneyReconciler(get_repo(), get_providers().midjourney(), get_artifacts())


def build_action_dispatcher() -> ActionDispatcher:
    return ActionDispatcher(get_repo(), get_providers().midjourney(), settings.midjourney_notify_url)
