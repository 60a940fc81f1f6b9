#!/usr/bin/env python3
"""Tests for resources.py - structured resource accessors."""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
import yaml
from resources import ResourceKey, StructuredResource, split_api_version


class TestSplitApiVersion:

    def test_core_group(self):
        assert split_api_version('v1') == ('', 'v1')

    def test_named_group(self):
        assert split_api_version('networking.k8s.io/v1') == ('networking.k8s.io', 'v1')

    def test_empty(self):
        assert split_api_version('') == ('', '')


class TestStructuredResource:
    """Test identity accessors and serialization."""

    def _ingress(self):
        return StructuredResource({
            'apiVersion': 'networking.k8s.io/v1',
            'kind': 'Ingress',
            'metadata': {'name': 'web', 'namespace': 'apps', 'resourceVersion': '42'},
            'spec': {'rules': []},
        })

    def test_identity_fields(self):
        r = self._ingress()
        assert r.group == 'networking.k8s.io'
        assert r.version == 'v1'
        assert r.kind == 'Ingress'
        assert r.name == 'web'
        assert r.namespace == 'apps'
        assert r.resource_version == '42'

    def test_key(self):
        assert self._ingress().key == ResourceKey('networking.k8s.io', 'Ingress', 'apps', 'web')

    def test_key_carries_version_outside_identity(self):
        key = self._ingress().key
        assert key.version == 'v1'
        assert key == ResourceKey('networking.k8s.io', 'Ingress', 'apps', 'web', version='v1beta1')
        assert hash(key) == hash(ResourceKey('networking.k8s.io', 'Ingress', 'apps', 'web'))

    def test_key_str(self):
        assert str(self._ingress().key) == 'Ingress.networking.k8s.io apps/web'
        assert str(ResourceKey('', 'Namespace', '', 'e2e')) == 'Namespace e2e'

    def test_missing_metadata(self):
        r = StructuredResource({'apiVersion': 'v1', 'kind': 'Namespace'})
        assert r.name == ''
        assert r.namespace == ''
        assert r.labels is None
        assert r.resource_version == ''

    def test_set_resource_version_creates_metadata(self):
        r = StructuredResource({'kind': 'Namespace'})
        r.resource_version = '7'
        assert r.obj['metadata'] == {'resourceVersion': '7'}

    def test_clear_resource_version(self):
        r = self._ingress()
        r.resource_version = ''
        assert 'resourceVersion' not in r.obj['metadata']

    def test_set_labels(self):
        r = StructuredResource({'kind': 'Namespace', 'metadata': {'name': 'a'}})
        r.labels = {'env': 'test'}
        assert r.obj['metadata'] == {'name': 'a', 'labels': {'env': 'test'}}

    @pytest.mark.parametrize('metadata', ['a-name', ['a'], 3])
    def test_set_on_malformed_metadata_raises(self, metadata):
        r = StructuredResource({'kind': 'Namespace', 'metadata': metadata})
        assert r.name == ''
        with pytest.raises(ValueError, match='not a mapping'):
            r.labels = {'env': 'test'}
        assert r.obj['metadata'] == metadata

    def test_deep_copy_is_independent(self):
        r = self._ingress()
        copy = r.deep_copy()
        copy.obj['spec']['rules'].append({'host': 'x'})
        assert r.obj['spec']['rules'] == []
        assert copy == StructuredResource(copy.obj)

    def test_to_json_is_compact(self):
        r = StructuredResource({'kind': 'ConfigMap', 'data': {'a': 'b'}})
        assert r.to_json() == '{"kind":"ConfigMap","data":{"a":"b"}}'
        assert json.loads(r.to_json()) == r.obj

    def test_to_yaml_keeps_field_order(self):
        r = self._ingress()
        text = r.to_yaml()
        assert text.startswith('apiVersion: networking.k8s.io/v1\nkind: Ingress\n')
        assert yaml.safe_load(text) == r.obj

    def test_from_obj(self):
        r = self._ingress()
        assert StructuredResource.from_obj(r) is r
        assert StructuredResource.from_obj({'kind': 'X'}).kind == 'X'
        with pytest.raises(TypeError):
            StructuredResource.from_obj(['not', 'a', 'mapping'])
