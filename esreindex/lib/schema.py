import logging
from collections import namedtuple

from esreindex.exceptions import RequestRejected
from esreindex.lib.location import display


SchemaSnapshot = namedtuple('SchemaSnapshot', ['index', 'settings', 'mappings_by_type'])

# settings that only make sense on the cluster that created the index
ENVIRONMENT_SETTINGS = ('version.created', 'uuid', 'provided_name', 'creation_date')


def strip_environment_settings(settings):
    """
    Removes creation version (and uuid, provided_name, creation_date) from an index settings body
    handles the flat form ({"index.version.created": ...}) and the nested one ({"index": {"version": {...}}}),
    optionally wrapped in {"settings": ...}
    :param settings: dict, settings of one index as returned by GET {idx}/_settings
    :return: dict, copy without the environment specific keys
    """
    settings = dict(settings)
    if isinstance(settings.get('settings'), dict):
        settings['settings'] = strip_environment_settings(settings['settings'])
        return settings

    for key in ENVIRONMENT_SETTINGS:
        settings.pop('index.%s' % key, None)

    if isinstance(settings.get('index'), dict):
        index = dict(settings['index'])
        for key in ENVIRONMENT_SETTINGS:
            head, _, tail = key.partition('.')
            if not tail:
                index.pop(head, None)
            elif isinstance(index.get(head), dict):
                nested = dict(index[head])
                nested.pop(tail, None)
                if nested:
                    index[head] = nested
                else:
                    del index[head]
        settings['index'] = index
    return settings


def unwrap_mappings(mappings):
    if isinstance(mappings, dict) and 'mappings' in mappings:
        return mappings['mappings']
    return mappings


class SchemaReplicator(object):
    """Makes the destination index exist with the source index settings and mappings."""

    def __init__(self, source_transport, dest_transport, logger=None):
        self.source = source_transport
        self.dest = dest_transport
        self.logger = logger or logging.getLogger('esreindex')

    def dest_exists(self, location):
        return self.dest.request('GET', '/%s/_status' % location.index) is not None

    def snapshot(self, source):
        """
        Capture settings and mappings of the source index
        :return: SchemaSnapshot, or None if the source index settings are unavailable
        """
        settings = self.source.request('GET', '/%s/_settings' % source.index)
        if not settings:
            return None

        index = list(settings.keys())[0]  # real name, source.index may be an alias
        mappings = self.source.request('GET', '/%s/_mapping' % index)
        if mappings is None:
            mappings_by_type = None
        else:
            mappings_by_type = unwrap_mappings(mappings.get(index, {})) or {}
        return SchemaSnapshot(index=index,
                              settings=strip_environment_settings(settings[index]),
                              mappings_by_type=mappings_by_type)

    def replicate(self, source, dest, options):
        """
        :param source: Location
        :param dest: Location
        :param options: CopyOptions
        :return: bool
        """
        try:
            return self._replicate(source, dest, options)
        except RequestRejected as e:
            self.logger.error("Copying schema to '%s' failed: %s", display(dest), e)
            return False

    def _replicate(self, source, dest, options):
        if options.remove_destination and self.dest_exists(dest):
            self.logger.info("Removing index '%s'...", display(dest))
            self.dest.request('DELETE', '/%s' % dest.index)

        if self.dest_exists(dest):
            self.logger.info("Index '%s' exists, keeping its settings and mappings", display(dest))
            return True

        schema = self.snapshot(source)
        if schema is None:
            self.logger.error("Failed to obtain original index '%s' settings!", display(source))
            return False

        self.logger.info("Creating '%s' index with settings from '%s/%s'...", display(dest), source.base_url,
                         schema.index)
        if self.dest.request('POST', '/%s' % dest.index, body=schema.settings) is None:
            self.logger.error("Creating index %s failed!", display(dest))
            return False

        if schema.mappings_by_type is None:
            self.logger.error("Failed to obtain original index '%s/%s' mappings!", source.base_url, schema.index)
            return False

        for doc_type, mapping in schema.mappings_by_type.items():
            self.logger.info("Copying mapping '%s/%s'...", display(dest), doc_type)
            try:
                result = self.dest.request('PUT', '/%s/%s/_mapping' % (dest.index, doc_type),
                                           body={doc_type: mapping})
            except RequestRejected:
                result = None
            if result is None:
                self.logger.error("Copying mapping '%s/%s' failed!", display(dest), doc_type)
                return False
            self.logger.info("Copying mapping '%s/%s' OK.", display(dest), doc_type)

        return True
