import copy
import json
import logging

import pytest
from elasticsearch.exceptions import ConnectionError, NotFoundError, RequestError, TransportError

from esreindex.config import DEFAULTS, RetryPolicy
from esreindex.lib.location import Location
from esreindex.lib.transport import Transport


class FakeCluster(object):
    """
    In-memory stand-in for an elasticsearch client, answering the REST calls esreindex makes
    through client.transport.perform_request and raising the real client exceptions
    """

    def __init__(self, shards=1):
        self.transport = self
        self.shards = shards
        self.indices = {}
        self.scrolls = {}
        self.calls = []
        self.failures = []
        self.rejected_types = set()
        self._scroll_seq = 0

    # fixtures

    def add_index(self, name, settings=None, mappings=None, docs=None, doc_type='doc'):
        self.indices[name] = {
            'settings': settings if settings is not None else {'index': {'number_of_shards': str(self.shards)}},
            'mappings': mappings if mappings is not None else {},
            'docs': {},
        }
        for i, source in enumerate(docs or []):
            self.indices[name]['docs'][str(i)] = {'_id': str(i), '_type': doc_type, '_source': source}
        return self.indices[name]

    def count(self, name):
        return len(self.indices[name]['docs'])

    def fail(self, method, path, error, times=1):
        """Raise `error` for the next `times` calls matching method and path."""
        self.failures.append([method, path, error, times])

    def requests(self, method=None, path=None):
        return [c for c in self.calls if (method is None or c[0] == method) and (path is None or c[1] == path)]

    # elasticsearch.Transport interface

    def perform_request(self, method, url, headers=None, params=None, body=None):
        self.calls.append((method, url, params, body))
        for failure in self.failures:
            if failure[0] == method and failure[1] == url and failure[3] > 0:
                failure[3] -= 1
                raise failure[2]

        parts = [p for p in url.split('/') if p]
        if parts == ['_bulk']:
            return self._bulk(body)
        if parts == ['_search', 'scroll']:
            return self._scroll(method, params, body)

        index = parts[0]
        if method == 'POST' and len(parts) == 1:
            return self._create(index, body)
        if index not in self.indices:
            raise NotFoundError(404, 'index_not_found_exception', {'error': 'no such index [%s]' % index})

        data = self.indices[index]
        if len(parts) == 1 and method == 'DELETE':
            del self.indices[index]
            return {'acknowledged': True}
        if parts[1:] == ['_status']:
            return {'indices': {index: {}}}
        if parts[1:] == ['_settings']:
            return {index: {'settings': copy.deepcopy(data['settings'])}}
        if parts[1:] == ['_mapping'] and method == 'GET':
            return {index: {'mappings': copy.deepcopy(data['mappings'])}}
        if len(parts) == 3 and parts[2] == '_mapping' and method == 'PUT':
            doc_type = parts[1]
            if doc_type in self.rejected_types:
                raise RequestError(400, 'mapper_parsing_exception', {'error': 'bad mapping for %s' % doc_type})
            data['mappings'][doc_type] = body[doc_type]
            return {'acknowledged': True}
        if parts[1:] == ['_count']:
            return {'count': len(data['docs']), '_shards': {'total': self.shards, 'successful': self.shards}}
        if parts[1:] == ['_search']:
            return self._scan(index, params)
        raise RequestError(400, 'invalid_request', {'error': 'unsupported %s %s' % (method, url)})

    def _create(self, index, body):
        if index in self.indices:
            raise RequestError(400, 'index_already_exists_exception', {'error': 'already exists [%s]' % index})
        raw = json.dumps(body)
        if 'version.created' in raw or '"created"' in raw:
            raise RequestError(400, 'illegal_argument_exception', {'error': 'unknown setting version.created'})
        self.indices[index] = {'settings': body, 'mappings': {}, 'docs': {}}
        return {'acknowledged': True}

    def _scan(self, index, params):
        assert params['search_type'] == 'scan'
        self._scroll_seq += 1
        token = 'scroll-%d' % self._scroll_seq
        hits = [copy.deepcopy(h) for h in self.indices[index]['docs'].values()]
        self.scrolls[token] = {'hits': hits, 'page': int(params['size']) * self.shards}
        return {'_scroll_id': token, 'hits': {'total': len(hits), 'hits': []}}

    def _scroll(self, method, params, body):
        if method == 'DELETE':
            for token in body['scroll_id']:
                self.scrolls.pop(token, None)
            return {'succeeded': True}
        token = params['scroll_id']
        if token not in self.scrolls:
            raise NotFoundError(404, 'search_context_missing_exception', {'error': 'no context %s' % token})
        state = self.scrolls.pop(token)
        page, rest = state['hits'][:state['page']], state['hits'][state['page']:]
        self._scroll_seq += 1
        new_token = 'scroll-%d' % self._scroll_seq
        self.scrolls[new_token] = {'hits': rest, 'page': state['page']}
        return {'_scroll_id': new_token, 'hits': {'total': len(page) + len(rest), 'hits': page}}

    def _bulk(self, body):
        assert body.endswith('\n\n')
        lines = body.strip('\n').split('\n')
        items, errors = [], False
        for action_line, source_line in zip(lines[::2], lines[1::2]):
            (action, meta), = json.loads(action_line).items()
            docs = self.indices[meta['_index']]['docs']
            if action == 'create' and meta['_id'] in docs:
                errors = True
                items.append({action: {'_id': meta['_id'], 'status': 409,
                                       'error': 'document already exists'}})
                continue
            doc = {'_id': meta['_id'], '_type': meta.get('_type'), '_source': json.loads(source_line)}
            for key in ('_timestamp', '_ttl'):
                if key in meta:
                    doc[key] = meta[key]
            docs[meta['_id']] = doc
            items.append({action: {'_id': meta['_id'], 'status': 201}})
        return {'took': 1, 'errors': errors, 'items': items}


def server_error():
    return TransportError(503, 'unavailable_shards_exception', {'error': 'try again'})


def connection_error():
    return ConnectionError('N/A', 'Connection refused', Exception('Connection refused'))


class Sleeper(object):
    """Records requested sleeps and advances a fake clock instead of sleeping."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def clock(self):
        return self.now


@pytest.fixture
def logger():
    return logging.getLogger('esreindex.test')


@pytest.fixture
def sleeper():
    return Sleeper()


@pytest.fixture
def retry():
    return RetryPolicy(max_attempts=5, base_delay=0.01, max_delay=0.1)


@pytest.fixture
def config():
    return dict(DEFAULTS)


@pytest.fixture
def source_cluster():
    return FakeCluster()


@pytest.fixture
def dest_cluster():
    return FakeCluster()


@pytest.fixture
def source(source_cluster):
    return Location('http://source:9200', 'logs')


@pytest.fixture
def dest(dest_cluster):
    return Location('http://dest:9200', 'logs_copy')


@pytest.fixture
def source_transport(source_cluster, retry, logger, sleeper):
    return Transport('http://source:9200', source_cluster, retry=retry, logger=logger, sleep=sleeper)


@pytest.fixture
def dest_transport(dest_cluster, retry, logger, sleeper):
    return Transport('http://dest:9200', dest_cluster, retry=retry, logger=logger, sleep=sleeper)
