"""Backend adapters: LiveStore and ConfigCenter protocols and clients."""

from backends.base import (
    BackendError,
    ConfigCenter,
    LiveStore,
    ResourceAlreadyExists,
    ResourceNotFound,
)
from backends.kube import KubeApiStore
from backends.nacos import NacosConfigCenter

__all__ = [
    'BackendError',
    'ConfigCenter',
    'LiveStore',
    'ResourceAlreadyExists',
    'ResourceNotFound',
    'KubeApiStore',
    'NacosConfigCenter',
]
