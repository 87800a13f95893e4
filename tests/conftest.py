"""
Shared fixtures. FakeSupabase is a small in-memory stand-in for the supabase-py
query builder: tables are lists of dicts, filters are applied on execute().
Embedded resources in select strings (e.g. "clubs:club_id (name)") are ignored.
"""

import copy
import itertools
import os
import pytest
from types import SimpleNamespace
from typing import Any, Dict, List

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

_ids = itertools.count(1)


def _cmp_value(value):
    return "" if value is None else str(value) if not isinstance(value, (int, float)) else value


class FakeResult:
    def __init__(self, data):
        self.data = data
        self.count = len(data) if isinstance(data, list) else None


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.filters = []
        self.action = "select"
        self.payload = None
        self.on_conflict = None
        self.order_by = []
        self._limit = None
        self._offset = 0
        self._single = False
        self._maybe_single = False

    # actions
    def select(self, *args, **kwargs):
        return self

    def insert(self, payload):
        self.action, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.action, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict: str = "id", **kwargs):
        self.action, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self):
        self.action = "delete"
        return self

    # filters
    def _filter(self, fn):
        self.filters.append(fn)
        return self

    def eq(self, column, value):
        return self._filter(lambda r: _cmp_value(r.get(column)) == _cmp_value(value))

    def neq(self, column, value):
        return self._filter(lambda r: _cmp_value(r.get(column)) != _cmp_value(value))

    def in_(self, column, values):
        wanted = {_cmp_value(v) for v in values}
        return self._filter(lambda r: _cmp_value(r.get(column)) in wanted)

    def is_(self, column, value):
        if value in ("null", None):
            return self._filter(lambda r: r.get(column) is None)
        return self._filter(lambda r: r.get(column) is not None)

    def gt(self, column, value):
        return self._filter(lambda r: r.get(column) is not None and str(r[column]) > str(value))

    def gte(self, column, value):
        return self._filter(lambda r: r.get(column) is not None and str(r[column]) >= str(value))

    def lt(self, column, value):
        return self._filter(lambda r: r.get(column) is not None and str(r[column]) < str(value))

    def lte(self, column, value):
        return self._filter(lambda r: r.get(column) is not None and str(r[column]) <= str(value))

    def ilike(self, column, pattern):
        needle = pattern.strip("%").lower()
        return self._filter(lambda r: needle in str(r.get(column) or "").lower())

    def match(self, criteria: Dict[str, Any]):
        for column, value in criteria.items():
            self.eq(column, value)
        return self

    # modifiers
    def order(self, column, desc: bool = False, **kwargs):
        self.order_by.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def offset(self, count):
        self._offset = count
        return self

    def range(self, start, end):
        self._offset, self._limit = start, end - start + 1
        return self

    def single(self):
        self._single = True
        return self

    def maybe_single(self):
        self._maybe_single = True
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        rows = self.db.tables.setdefault(self.table_name, [])
        self.db.calls.append((self.table_name, self.action, copy.deepcopy(self.payload)))

        if self.action == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for item in items:
                row = {"id": f"{self.table_name}-{next(_ids)}", **copy.deepcopy(item)}
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return FakeResult(inserted)

        if self.action == "upsert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
            out = []
            for item in items:
                existing = next(
                    (r for r in rows if all(_cmp_value(r.get(k)) == _cmp_value(item.get(k)) for k in keys)),
                    None,
                )
                if existing is not None:
                    existing.update(copy.deepcopy(item))
                    out.append(copy.deepcopy(existing))
                else:
                    row = {"id": f"{self.table_name}-{next(_ids)}", **copy.deepcopy(item)}
                    rows.append(row)
                    out.append(copy.deepcopy(row))
            return FakeResult(out)

        matched = [r for r in rows if self._matches(r)]

        if self.action == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResult([copy.deepcopy(r) for r in matched])

        if self.action == "delete":
            self.db.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            return FakeResult([copy.deepcopy(r) for r in matched])

        for column, desc in reversed(self.order_by):
            matched.sort(key=lambda r: (r.get(column) is None, str(r.get(column))), reverse=desc)
        matched = matched[self._offset:]
        if self._limit is not None:
            matched = matched[:self._limit]
        data = [copy.deepcopy(r) for r in matched]
        if self._single:
            if len(data) != 1:
                raise Exception("JSON object requested, multiple (or no) rows returned")
            return FakeResult(data[0])
        if self._maybe_single:
            return FakeResult(data[0]) if data else None
        return FakeResult(data)


class FakeRpc:
    def __init__(self, result):
        self.result = result

    def execute(self):
        if isinstance(self.result, Exception):
            raise self.result
        return FakeResult(self.result)


class FakeSupabase:
    def __init__(self, tables: Dict[str, List[Dict[str, Any]]] = None):
        self.tables = copy.deepcopy(tables or {})
        self.calls = []
        self.rpc_results: Dict[str, Any] = {}
        self.auth = SimpleNamespace(admin=SimpleNamespace(delete_user=lambda user_id: None))

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any] = None) -> FakeRpc:
        return FakeRpc(self.rpc_results.get(name, Exception(f"function {name} does not exist")))

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.get(name, [])


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def make_supabase():
    return FakeSupabase
