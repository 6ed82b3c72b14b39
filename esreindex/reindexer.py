import logging
import sys
import time

from esreindex.config import build_options, build_retry_policy, load_config
from esreindex.es_connection import get_es
from esreindex.exceptions import ReindexError
from esreindex.lib.consistency import ConsistencyChecker
from esreindex.lib.documents import DocumentPipeline
from esreindex.lib.location import display, resolve_location
from esreindex.lib.schema import SchemaReplicator
from esreindex.lib.transport import Transport


def confirm(stream=None, out=None):
    """Block until the operator hits enter; Ctrl-c (KeyboardInterrupt) aborts."""
    stream = stream or sys.stdin
    out = out or sys.stdout
    out.write("Confirm or hit Ctrl-c to abort...\n")
    out.flush()
    stream.readline()


class Reindexer(object):
    """
    Copies one index to another: schema, then documents, then a document count check
    :param src: str, source location "[url/]index"
    :param dst: str, destination location "[url/]index"
    :param options: CopyOptions
    :param config: esreindex configuration, see esreindex.config.load_config
    :param logger: logging.Logger
    :param es_factory: callable(url, config, connections) -> elasticsearch client
    :param sleep: callable used between retries and count polls
    :param clock: monotonic clock used to time the document count check
    :param prompt: callable used for interactive confirmation
    """

    def __init__(self, src, dst, options=None, config=None, logger=None, es_factory=None, sleep=time.sleep,
                 clock=time.monotonic, prompt=confirm):
        self.config = config if config is not None else load_config()
        self.options = options if options is not None else build_options(self.config)
        self.logger = logger or logging.getLogger('esreindex')
        self.prompt = prompt

        self.source = resolve_location(src, self.config['ES_URL'])
        self.dest = resolve_location(dst, self.config['ES_URL'])

        retry = build_retry_policy(self.config)
        connections = {}
        transports = []
        for location in (self.source, self.dest):
            es = (es_factory or get_es)(location.base_url, self.config, connections)
            transports.append(Transport(location.base_url, es, retry=retry, logger=self.logger, sleep=sleep))
        self.source_transport, self.dest_transport = transports

        self.schema = SchemaReplicator(self.source_transport, self.dest_transport, self.logger)
        self.documents = DocumentPipeline(self.source_transport, self.dest_transport, self.logger,
                                          scroll=self.config['SCROLL'])
        self.checker = ConsistencyChecker(self.source_transport, self.dest_transport, self.logger,
                                          interval=self.config['CHECK_INTERVAL'], clock=clock, sleep=sleep)

    def describe(self):
        if self.options.remove_destination:
            mode = ' with rewriting destination mapping!'
        elif self.options.update_existing:
            mode = ' with updating existing documents!'
        else:
            mode = '.'
        return "Copying '%s' to '%s'%s" % (display(self.source), display(self.dest), mode)

    def copy(self, on_progress=None):
        """
        :param on_progress: callable receiving a ProgressEvent per copied batch
        :return: bool, True if schema and documents were copied and the document counts match
        """
        self.logger.info(self.describe())
        if self.options.interactive:
            self.prompt()

        try:
            return (self.schema.replicate(self.source, self.dest, self.options)
                    and self.documents.copy(self.source, self.dest, self.options, on_progress)
                    and self.checker.check(self.source, self.dest, self.config['CHECK_TIMEOUT']))
        except ReindexError as e:
            self.logger.error("Copying '%s' to '%s' failed: %s", display(self.source), display(self.dest), e)
            return False


def copy_index(src, dst, config=None, logger=None, **options):
    """
    One-shot copy of src to dst
    :param options: remove_destination, update_existing, batch_size, interactive
    :return: bool
    """
    config = config if config is not None else load_config()
    reindexer = Reindexer(src, dst, build_options(config, **options), config=config, logger=logger)
    return reindexer.copy()
