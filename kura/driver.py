"""kura.driver - MongoDB access through pymongo"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

try:
    import pymongo
    from bson.errors import BSONError
    from pymongo.errors import OperationFailure, PyMongoError
except ImportError:
    print("Please install pymongo: pip install pymongo")
    raise

from .errors import DriverError, OperatorRequired

logger = logging.getLogger(__name__)

DEFAULT_URL = "mongodb://localhost:27017"

# Server error codes for a multi update given a replacement document. Code 9
# (FailedToParse) also covers unrelated bad updates, so it needs the message.
_REPLACEMENT_CODE = 10158
_FAILED_TO_PARSE = 9

# Server failures plus documents the BSON encoder refuses (8-byte int limit,
# NUL in keys).
_FAILURES = (PyMongoError, BSONError, OverflowError)

Document = Dict[str, Any]


def is_operator_document(doc: Document) -> bool:
    """True when every top-level key is an update operator such as $set."""
    return bool(doc) and all(str(k).startswith("$") for k in doc)


def refuses_replacement(error: OperationFailure) -> bool:
    """True when the server rejected a multi update for not using $ operators."""
    if error.code == _REPLACEMENT_CODE:
        return True
    return error.code == _FAILED_TO_PARSE and "$ operators" in str(error)


class MongoDriver:
    """
    Thin adapter over pymongo.

    Collection handles are pymongo Collection objects. Every pymongo failure
    is raised as DriverError so the shell can report it and carry on.
    """

    def __init__(self, url: str = DEFAULT_URL, client: Optional[Any] = None):
        self.url = url
        try:
            self.client = client if client is not None else pymongo.MongoClient(url)
        except (PyMongoError, ValueError) as e:
            raise DriverError(f"can't connect to {url}: {e}") from e

    def list_databases(self) -> List[str]:
        try:
            return list(self.client.list_database_names())
        except _FAILURES as e:
            raise DriverError(str(e)) from e

    def list_collections(self, database: str) -> List[str]:
        try:
            return list(self.client[database].list_collection_names())
        except _FAILURES as e:
            raise DriverError(str(e)) from e

    def collection(self, database: str, name: str):
        try:
            return self.client[database][name]
        except (PyMongoError, TypeError, ValueError) as e:
            raise DriverError(str(e)) from e

    def count(self, handle, query: Document) -> int:
        try:
            return handle.count_documents(query)
        except _FAILURES as e:
            raise DriverError(str(e)) from e

    def find(self, handle, query: Document, projection: Optional[Document] = None) -> Iterable[Document]:
        try:
            yield from handle.find(query, projection)
        except _FAILURES as e:
            raise DriverError(f"cursor failed: {e}") from e

    def insert(self, handle, doc: Union[Document, List[Document]]) -> None:
        try:
            if isinstance(doc, list):
                handle.insert_many(doc)
            else:
                handle.insert_one(doc)
        except _FAILURES as e:
            raise DriverError(str(e)) from e

    def update(self, handle, query: Document, update: Document, multi: bool = True, upsert: bool = False) -> None:
        """
        Update matching documents.

        With multi set, a replacement document raises OperatorRequired: only
        operator documents can be applied to many documents at once.
        """
        try:
            if multi:
                handle.update_many(query, update, upsert=upsert)
            elif is_operator_document(update):
                handle.update_one(query, update, upsert=upsert)
            else:
                handle.replace_one(query, update, upsert=upsert)
        except ValueError as e:
            # pymongo validates update documents before sending them
            if multi:
                raise OperatorRequired(str(e)) from e
            raise DriverError(str(e)) from e
        except OperationFailure as e:
            if multi and refuses_replacement(e):
                raise OperatorRequired(str(e)) from e
            raise DriverError(str(e)) from e
        except _FAILURES as e:
            raise DriverError(str(e)) from e

    def remove(self, handle, query: Document) -> None:
        try:
            handle.delete_many(query)
        except _FAILURES as e:
            raise DriverError(str(e)) from e

    def aggregate(self, handle, pipeline: List[Document]) -> Iterable[Document]:
        try:
            yield from handle.aggregate(pipeline)
        except _FAILURES as e:
            raise DriverError(f"cursor failed: {e}") from e

    def close(self) -> None:
        logger.debug("closing connection to %s", self.url)
        self.client.close()
