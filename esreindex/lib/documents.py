import json
import logging
import time
from collections import namedtuple
from datetime import datetime, timedelta

from esreindex.exceptions import ReindexError, RequestRejected
from esreindex.lib.location import display
from esreindex.lib.utils import format_elapsed, hits_total, percent


# hit metadata carried over to the bulk action line when present
PRESERVED_FIELDS = ('_timestamp', '_ttl')

BULK_HEADERS = {'Content-Type': 'application/x-ndjson'}

ProgressEvent = namedtuple('ProgressEvent', ['done', 'total', 'percent', 'elapsed', 'eta'])


class BulkRecord(namedtuple('BulkRecord', ['action', 'target_index', 'doc_id', 'doc_type', 'preserved',
                                           'source'])):
    """One document ready for the bulk API."""

    @classmethod
    def from_hit(cls, hit, target_index, action):
        preserved = {k: hit[k] for k in PRESERVED_FIELDS if k in hit}
        return cls(action=action, target_index=target_index, doc_id=hit['_id'], doc_type=hit.get('_type'),
                   preserved=preserved, source=hit.get('_source', {}))

    def to_lines(self):
        meta = {'_index': self.target_index, '_id': self.doc_id}
        if self.doc_type is not None:
            meta['_type'] = self.doc_type
        meta.update(self.preserved)
        return '%s\n%s\n' % (json.dumps({self.action: meta}), json.dumps(self.source))


def build_bulk_payload(records):
    """NDJSON bulk body, action line then source line per record, terminated by an empty line."""
    payload = ''.join(record.to_lines() for record in records)
    if payload:
        payload += '\n'
    return payload


class ScanCursor(object):
    """State of one scroll over the source index, used by a single DocumentPipeline.copy() run."""

    def __init__(self, token, total, started_at):
        self.token = token
        self.total = total
        self.processed = 0
        self.started_at = started_at

    def advance(self, count):
        self.processed += count
        if self.processed > self.total:
            # documents indexed into the source while scrolling
            self.total = self.processed


class CopyStats(object):
    def __init__(self):
        self.done = 0
        self.skipped = 0
        self.failed = 0


class DocumentPipeline(object):
    """
    Streams every document of the source index into the destination index:
    scan/scroll on the source, one bulk request on the destination per scroll batch.
    """

    def __init__(self, source_transport, dest_transport, logger=None, scroll='10m', clock=time.time):
        self.source = source_transport
        self.dest = dest_transport
        self.logger = logger or logging.getLogger('esreindex')
        self.scroll = scroll
        self.clock = clock
        self.stats = CopyStats()

    def shard_count(self, source):
        count = self.source.request('GET', '/%s/_count' % source.index, params={'q': '*'}) or {}
        shards = int(count.get('_shards', {}).get('total', 1) or 1)
        return max(shards, 1)

    def open_cursor(self, source, batch_size):
        """
        Start a scan over the source index, asking every shard for batch_size / shards documents per round
        :return: (ScanCursor, list of hits already carried by the scan response)
        """
        shards = self.shard_count(source)
        size = max(batch_size // shards, 1)
        scan = self.source.request('GET', '/%s/_search' % source.index,
                                   params={'search_type': 'scan', 'scroll': self.scroll, 'size': size})
        if scan is None:
            raise RequestRejected('GET', '/%s/_search' % source.index, 404, 'source index not found')
        hits = scan.get('hits', {})
        cursor = ScanCursor(scan.get('_scroll_id'), hits_total(hits), self.clock())
        return cursor, hits.get('hits', [])

    def fetch(self, cursor):
        """Next scroll batch; the cursor token is replaced by the one the response carries."""
        data = self.source.request('GET', '/_search/scroll', params={'scroll': self.scroll, 'scroll_id': cursor.token})
        if data is None:
            raise RequestRejected('GET', '/_search/scroll', 404, 'scroll context expired')
        cursor.token = data.get('_scroll_id', cursor.token)
        return data.get('hits', {}).get('hits', [])

    def release(self, cursor):
        if not cursor.token:
            return
        try:
            self.source.request('DELETE', '/_search/scroll', body={'scroll_id': [cursor.token]},
                                once=True, quiet=True)
        except ReindexError as e:
            self.logger.debug("Could not clear scroll context: %s", e)
        cursor.token = None

    def write(self, dest, hits, action):
        payload = build_bulk_payload(BulkRecord.from_hit(hit, dest.index, action) for hit in hits)
        if not payload:
            return
        result = self.dest.request('POST', '/_bulk', body=payload, headers=BULK_HEADERS)
        if result is None:
            raise RequestRejected('POST', '/_bulk', 404, 'bulk endpoint not found')
        if result.get('errors'):
            self.tally_errors(result)

    def tally_errors(self, result):
        """
        Count per-item failures of a bulk response: a 409 on create means the document already exists
        and is counted as skipped, anything else counts as failed
        """
        first_error = None
        for item in result.get('items', []):
            outcome = list(item.values())[0]
            status = outcome.get('status', 200)
            if status == 409:
                self.stats.skipped += 1
            elif status >= 300:
                self.stats.failed += 1
                first_error = first_error or outcome.get('error')
        if first_error is not None:
            self.logger.error("Bulk write had failed documents, first error: %s", first_error)

    def progress(self, cursor):
        elapsed = self.clock() - cursor.started_at
        eta = None
        if cursor.processed:
            eta = datetime.fromtimestamp(cursor.started_at) + timedelta(
                seconds=cursor.total * elapsed / cursor.processed)
        return ProgressEvent(done=cursor.processed, total=cursor.total,
                             percent=percent(cursor.processed, cursor.total), elapsed=elapsed, eta=eta)

    def log_progress(self, event):
        self.logger.info("Copy progress: %u/%u (%.1f%%) done in %s, E.T.A. : %s.", event.done, event.total,
                         event.percent, format_elapsed(event.elapsed), event.eta)

    def copy(self, source, dest, options, on_progress=None):
        """
        :param source: Location
        :param dest: Location
        :param options: CopyOptions
        :param on_progress: callable receiving a ProgressEvent after each batch (defaults to logging it)
        :return: bool
        """
        on_progress = on_progress or self.log_progress
        action = 'index' if options.update_existing else 'create'
        self.stats = CopyStats()
        self.logger.info("Copying '%s' to '%s'...", display(source), display(dest))

        try:
            cursor, hits = self.open_cursor(source, options.batch_size)
        except RequestRejected as e:
            self.logger.error("Opening scan on '%s' failed: %s", display(source), e)
            return False

        self.logger.info("Copy progress: %u/%u (%.1f%%) done.", cursor.processed, cursor.total, 0)
        try:
            while True:
                if not hits:
                    hits = self.fetch(cursor)
                    if not hits:
                        break
                self.write(dest, hits, action)
                cursor.advance(len(hits))
                self.stats.done = cursor.processed
                on_progress(self.progress(cursor))
                hits = []
        except RequestRejected as e:
            self.logger.error("Copying documents to '%s' failed: %s", display(dest), e)
            return False
        finally:
            self.release(cursor)

        self.logger.info("Copy progress: %u/%u done in %s.", cursor.processed, cursor.total,
                         format_elapsed(self.clock() - cursor.started_at))
        if self.stats.skipped or self.stats.failed:
            self.logger.warning("%d documents already existed in '%s' and were skipped, %d failed",
                                self.stats.skipped, display(dest), self.stats.failed)
        return True
