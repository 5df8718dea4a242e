# migrator/database/repository.py

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Type

from sqlalchemy import delete, func, inspect, select, text

from ..core.logging import LoggingMixin
from ..utils.paging import iterate_pages
from .base import DBStagingDocument
from .connection import DatabaseManager
from .tables import COLLECTIONS


# [(field, 1 | -1), ...] in the document-store convention
KeySpec = Sequence[Tuple[str, int]]


def index_name_for(collection: str, key_spec: KeySpec) -> str:
    parts = [f"{field}_{direction}" for field, direction in key_spec]
    return f"{collection}_{'_'.join(parts)}"


class StagingRepository(LoggingMixin):
    """
    Collection-oriented facade over the staging tables.

    Every collection is a table whose rows are documents; ``seq`` is the
    insertion order and is used as the last sort key so paging with
    skip/limit is stable while nobody else writes.
    """

    def __init__(self, db_manager: DatabaseManager,
                 collections: Optional[Mapping[str, Type[DBStagingDocument]]] = None):
        self.db_manager = db_manager
        self.collections = dict(collections or COLLECTIONS)

    def _model(self, collection: str) -> Type[DBStagingDocument]:
        try:
            return self.collections[collection]
        except KeyError:
            raise ValueError(f"Unknown staging collection: {collection}") from None

    def _column(self, collection: str, field: str):
        model = self._model(collection)
        table = model.__table__
        if field not in table.c:
            raise ValueError(f"Collection {collection} has no field {field}")
        return table.c[field]

    # === Collection lifecycle ===

    def collection_exists(self, collection: str) -> bool:
        table_name = self._model(collection).__tablename__
        return inspect(self.db_manager.engine).has_table(table_name)

    def ensure_collection(self, collection: str) -> None:
        self._model(collection).__table__.create(bind=self.db_manager.engine, checkfirst=True)

    def reset_collection(self, collection: str) -> int:
        """Delete every document of an existing collection; no-op when it does not exist"""
        if not self.collection_exists(collection):
            self.log_debug("Collection absent, nothing to reset", collection=collection)
            return 0

        model = self._model(collection)
        with self.db_manager.get_transaction() as session:
            result = session.execute(delete(model))
            deleted = result.rowcount or 0

        self.log_info("Collection reset", collection=collection, count=deleted)
        return deleted

    def list_indexes(self, collection: str) -> List[str]:
        if not self.collection_exists(collection):
            return []
        table_name = self._model(collection).__tablename__
        indexes = inspect(self.db_manager.engine).get_indexes(table_name)
        return [index["name"] for index in indexes]

    def ensure_index(self, collection: str, key_spec: KeySpec,
                     name: Optional[str] = None, unique: bool = False) -> bool:
        """Create the index unless one with the same name exists. Returns True if created."""
        if not key_spec:
            raise ValueError("Index key spec must name at least one field")

        index_name = name or index_name_for(collection, key_spec)
        self.ensure_collection(collection)
        if index_name in self.list_indexes(collection):
            self.log_debug("Index already present", collection=collection, index=index_name)
            return False

        preparer = self.db_manager.engine.dialect.identifier_preparer
        columns = []
        for field, direction in key_spec:
            column = self._column(collection, field)
            order = "DESC" if direction < 0 else "ASC"
            columns.append(f"{preparer.quote(column.name)} {order}")

        table_name = self._model(collection).__tablename__
        statement = "CREATE {unique}INDEX {name} ON {table} ({columns})".format(
            unique="UNIQUE " if unique else "",
            name=preparer.quote(index_name),
            table=preparer.quote(table_name),
            columns=", ".join(columns),
        )
        with self.db_manager.get_transaction() as session:
            session.execute(text(statement))

        self.log_info("Index created", collection=collection, index=index_name)
        return True

    # === Queries ===

    def _select(self, collection: str, filter: Optional[Mapping[str, Any]], sort: Optional[KeySpec]):
        model = self._model(collection)
        query = select(model)

        for field, value in (filter or {}).items():
            query = query.where(self._column(collection, field) == value)

        order_by = []
        for field, direction in sort or ():
            column = self._column(collection, field)
            order_by.append(column.desc() if direction < 0 else column.asc())
        if not any(field == "seq" for field, _ in sort or ()):
            order_by.append(model.seq.asc())

        return query.order_by(*order_by)

    def find_sorted(self, collection: str,
                    filter: Optional[Mapping[str, Any]] = None,
                    sort: Optional[KeySpec] = None,
                    skip: int = 0,
                    limit: Optional[int] = None) -> List[Dict[str, Any]]:
        if not self.collection_exists(collection):
            return []

        query = self._select(collection, filter, sort)
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)

        with self.db_manager.get_session() as session:
            return [row.to_dict() for row in session.scalars(query)]

    def find_all_sorted(self, collection: str,
                        filter: Optional[Mapping[str, Any]] = None,
                        sort: Optional[KeySpec] = None,
                        page_size: int = 1000) -> Iterator[Dict[str, Any]]:
        """Stream a whole collection in pages of page_size"""
        def fetch(offset: int, limit: int) -> List[Dict[str, Any]]:
            return self.find_sorted(collection, filter=filter, sort=sort, skip=offset, limit=limit)

        for _, _, page in iterate_pages(fetch, page_size):
            yield from page

    def find_one(self, collection: str, filter: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        documents = self.find_sorted(collection, filter=filter, limit=1)
        return documents[0] if documents else None

    def count(self, collection: str, filter: Optional[Mapping[str, Any]] = None) -> int:
        if not self.collection_exists(collection):
            return 0

        model = self._model(collection)
        query = select(func.count()).select_from(model)
        for field, value in (filter or {}).items():
            query = query.where(self._column(collection, field) == value)

        with self.db_manager.get_session() as session:
            return session.execute(query).scalar_one()

    # === Writes ===

    def insert_one(self, collection: str, document: Mapping[str, Any]) -> int:
        model = self._model(collection)
        with self.db_manager.get_transaction() as session:
            row = model(**document)
            session.add(row)
            session.flush()
            return row.seq

    def insert_many(self, collection: str, documents: Iterable[Mapping[str, Any]]) -> int:
        items = [dict(document) for document in documents]
        if not items:
            return 0

        model = self._model(collection)
        with self.db_manager.get_transaction() as session:
            session.bulk_insert_mappings(model, items)

        self.log_debug("Documents inserted", collection=collection, count=len(items))
        return len(items)

    def bulk_update(self, collection: str, updates: Iterable[Mapping[str, Any]]) -> int:
        """Apply partial updates; every mapping must carry the document's seq"""
        items = [dict(update) for update in updates]
        if not items:
            return 0
        if any("seq" not in item for item in items):
            raise ValueError("bulk_update requires 'seq' in every update")

        model = self._model(collection)
        with self.db_manager.get_transaction() as session:
            session.bulk_update_mappings(model, items)

        return len(items)

    def upsert(self, collection: str, match: Mapping[str, Any], values: Mapping[str, Any]) -> bool:
        """Set fields on the matching document, inserting it if absent. Returns True if inserted."""
        model = self._model(collection)
        with self.db_manager.get_transaction() as session:
            row = session.scalars(select(model).filter_by(**match).limit(1)).first()
            if row is None:
                session.add(model(**match, **values))
                return True
            for field, value in values.items():
                setattr(row, field, value)
            return False

    def upsert_append(self, collection: str, match: Mapping[str, Any],
                      append_field: str, value: Any) -> bool:
        """
        Append value to the list at append_field of the matching document,
        or insert {match fields, append_field: [value]} if none matches.

        Returns True if a new document was created.
        """
        model = self._model(collection)
        self._column(collection, append_field)

        with self.db_manager.get_transaction() as session:
            row = session.scalars(select(model).filter_by(**match).limit(1)).first()
            if row is None:
                session.add(model(**match, **{append_field: [value]}))
                return True

            # Assign a new list so the JSON column registers the change
            current = list(getattr(row, append_field) or [])
            setattr(row, append_field, current + [value])
            return False
