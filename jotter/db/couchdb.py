import logging

import pycouchdb

from jotter.settings import settings

logger = logging.getLogger(__name__)


def get_couch():
    """
    Create a CouchDB database handle.
    Called at runtime to avoid import-time connections.
    """
    couch = pycouchdb.Server(settings.couchdb_url)
    return couch.database(settings.COUCHDB_DATABASE)


def ensure_database() -> None:
    """Create the configured database on first start."""
    couch = pycouchdb.Server(settings.couchdb_url)
    try:
        couch.database(settings.COUCHDB_DATABASE)
    except pycouchdb.exceptions.NotFound:
        couch.create(settings.COUCHDB_DATABASE)
        logger.info(f"Created CouchDB database {settings.COUCHDB_DATABASE}")
