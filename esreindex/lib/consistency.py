import logging
import time

from esreindex.lib.location import display


class ConsistencyChecker(object):
    """Compares source and destination document counts until they match or time runs out."""

    def __init__(self, source_transport, dest_transport, logger=None, interval=1, clock=time.monotonic,
                 sleep=time.sleep):
        self.source = source_transport
        self.dest = dest_transport
        self.logger = logger or logging.getLogger('esreindex')
        self.interval = interval
        self.clock = clock
        self.sleep = sleep

    @staticmethod
    def count(transport, location):
        """Document count of an index, a missing index counts 0."""
        result = transport.request('GET', '/%s/_count' % location.index, params={'q': '*'})
        if result is None:
            return 0
        return int(result.get('count', 0))

    def check(self, source, dest, timeout=60):
        """
        :param source: Location
        :param dest: Location
        :param timeout: seconds to wait for the counts to converge
        :return: bool, True if both counts were equal at the same poll
        """
        self.logger.info("Checking document count of '%s' and '%s'...", display(source), display(dest))
        source_count, dest_count = 1, 0
        deadline = self.clock() + timeout
        while True:
            source_count = self.count(self.source, source)
            dest_count = self.count(self.dest, dest)
            if source_count == dest_count or self.clock() + self.interval > deadline:
                break
            self.sleep(self.interval)

        equal = source_count == dest_count
        self.logger.info("Document count: %d == %d (%s)", source_count, dest_count, 'equal' if equal else 'NOT EQUAL')
        return equal
