"""Reconciliation engine and teardown registry."""

from applier.engine import Applier, to_yaml_text
from applier.teardown import TeardownAction, TeardownRegistry

__all__ = [
    'Applier',
    'to_yaml_text',
    'TeardownAction',
    'TeardownRegistry',
]
