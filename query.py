"""
Advanced results

Turns a raw URL query string into a filtered, sorted, paginated and
relation-expanded listing of one collection:

    GET /api/v1/courses?tuition_fee[gte]=1000&title=%Web%&select=title,weeks&sort=-tuition_fee&page=2&limit=5

* `field[op]=value` with op in lt, lte, gt, gte, ne, in becomes a comparison
  (`in` takes a comma-separated list);
* a value containing `%` becomes a case-sensitive substring match;
* anything else is an exact match (a repeated key matches any of its values);
* `select`, `sort`, `page` and `limit` are control keys, not filters.

Route handlers get the assembled result object from the `advanced_results()`
dependency and return it as is.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type, Union, get_args, get_origin

import pymongo
from bson import ObjectId
from fastapi import Depends, Request
from pydantic import BaseModel
from pymongo.database import Database

from database import get_db, sanitize, to_obj_id

RESERVED_PARAMS = ("select", "sort", "page", "limit")
OPERATORS = ("lt", "lte", "gt", "gte", "ne", "in")
WILDCARD = "%"

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
DEFAULT_SORT = [("created_at", pymongo.DESCENDING)]

_OPERATOR_KEY = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<op>[^\[\]]+)\]$")

# Documents are served with `id`; filters on it address `_id`
ID_FIELD = "_id"


# region Query Translator

def _to_number(value: str) -> Union[int, float]:
    try:
        return int(value)
    except ValueError:
        return float(value)


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "1"):
        return True
    if lowered in ("false", "0"):
        return False
    raise ValueError(value)


def field_casts(schema: Type[BaseModel]) -> Dict[str, Callable[[str], Any]]:
    """ Map the numeric and boolean fields of a document schema to a parser for query string values """
    casts = {}
    for name, field in schema.model_fields.items():
        annotation = field.annotation
        if get_origin(annotation) is Union:
            args = [a for a in get_args(annotation) if a is not type(None)]
            if len(args) == 1:
                annotation = args[0]
        if annotation is bool:
            casts[name] = _to_bool
        elif annotation in (int, float):
            casts[name] = _to_number
    return casts


def _field_name(name: str) -> str:
    return ID_FIELD if name == "id" else name


def _to_object_id(value: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise ValueError(value)
    return ObjectId(value)


def _cast(casts: Dict[str, Callable[[str], Any]], field: str, value: str) -> Any:
    cast = _to_object_id if field == ID_FIELD else casts.get(field)
    if cast is None:
        return value
    try:
        return cast(value)
    except ValueError:
        return value


def translate_query(params: Iterable[Tuple[str, str]], casts: Optional[Dict[str, Callable]] = None) -> Dict[str, Any]:
    """ Build a MongoDB filter from query string pairs

    :param params: (key, value) pairs, in order; a key may repeat
    :param casts: field name -> parser, see `field_casts()`
    """
    casts = casts or {}

    grouped: Dict[str, List[str]] = {}
    for key, value in params:
        if key in RESERVED_PARAMS:
            continue
        grouped.setdefault(key, []).append(value)

    clauses: Dict[str, Dict[str, Any]] = {}
    for key, values in grouped.items():
        m = _OPERATOR_KEY.match(key)
        if m and m.group("op") in OPERATORS:
            field, op = _field_name(m.group("field")), m.group("op")
            clause = clauses.setdefault(field, {})
            if op == "in":
                clause["$in"] = [_cast(casts, field, part) for v in values for part in v.split(",")]
            else:
                clause["$" + op] = _cast(casts, field, values[-1])
            continue

        # Unknown operators fall through here: `field[foo]` is just a field name
        key = _field_name(key)
        clause = clauses.setdefault(key, {})
        if len(values) > 1:
            clause["$in"] = [_cast(casts, key, v) for v in values]
        elif WILDCARD in values[0]:
            clause["$regex"] = re.escape(values[0].replace(WILDCARD, ""))
        else:
            clause["$eq"] = _cast(casts, key, values[0])

    # Plain equality reads better as a bare value
    return {
        field: clause["$eq"] if list(clause) == ["$eq"] else clause
        for field, clause in clauses.items()
    }

# endregion


# region Result Paginator

def _positive_int(value: Optional[str], default: int) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    return n if n > 0 else default


def parse_select(select: Optional[str]) -> Optional[Dict[str, int]]:
    """ `name,description` -> projection """
    if not select:
        return None
    fields = [f.strip() for f in select.split(",") if f.strip()]
    return {f: 1 for f in fields} or None


def parse_sort(sort: Optional[str]) -> List[Tuple[str, int]]:
    """ `-average_cost,name` -> [(average_cost, DESC), (name, ASC)] """
    if not sort:
        return list(DEFAULT_SORT)
    order = []
    for f in sort.split(","):
        f = f.strip()
        if not f:
            continue
        if f.startswith("-"):
            order.append((f[1:], pymongo.DESCENDING))
        else:
            order.append((f.lstrip("+"), pymongo.ASCENDING))
    return order or list(DEFAULT_SORT)


@dataclass(frozen=True)
class PageRequest:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @classmethod
    def from_params(cls, page: Optional[str], limit: Optional[str]) -> "PageRequest":
        return cls(_positive_int(page, DEFAULT_PAGE), _positive_int(limit, DEFAULT_LIMIT))

    @property
    def start_index(self) -> int:
        return (self.page - 1) * self.limit

    def apply(self, cursor):
        return cursor.skip(self.start_index).limit(self.limit)

    def pagination(self, total: int) -> Dict[str, Any]:
        """ Pagination metadata for a filter that matched `total` documents """
        # Floor division rounds (0 - 1) / limit down to -1, so an empty result has 0 pages
        pagination: Dict[str, Any] = {"pages": (total - 1) // self.limit + 1}
        if self.page * self.limit < total:
            pagination["next"] = {"page": self.page + 1, "limit": self.limit}
        if self.start_index > 0:
            pagination["prev"] = {"page": self.page - 1, "limit": self.limit}
        return pagination

# endregion


# region Relation expansion

@dataclass(frozen=True)
class Populate:
    """ Relation to expand on every listed document

    Forward: `Populate("bootcamp", "bootcamp", local_field="bootcamp_id")`
        stores the referenced bootcamp under `bootcamp`.
    Reverse: `Populate("courses", "course", foreign_field="bootcamp_id")`
        stores the list of courses pointing at this document under `courses`.
    """
    path: str
    collection: str
    local_field: Optional[str] = None
    foreign_field: Optional[str] = None
    select: Tuple[str, ...] = ()

    def projection(self) -> Optional[Dict[str, int]]:
        if not self.select:
            return None
        fields = dict.fromkeys(self.select, 1)
        if self.foreign_field:
            fields[self.foreign_field] = 1
        return fields


def expand(db: Database, docs: List[Dict[str, Any]], populate: Sequence[Populate]) -> List[Dict[str, Any]]:
    for rel in populate:
        if rel.foreign_field:
            owner_ids = [str(d["_id"]) for d in docs if "_id" in d]
            related: Dict[str, List[Dict]] = {}
            cursor = db[rel.collection].find({rel.foreign_field: {"$in": owner_ids}}, rel.projection())
            for r in cursor:
                related.setdefault(r.get(rel.foreign_field), []).append(sanitize(r))
            for d in docs:
                d[rel.path] = related.get(str(d.get("_id")), [])
        else:
            ref_ids = {d.get(rel.local_field) for d in docs}
            obj_ids = [ObjectId(i) for i in ref_ids if isinstance(i, str) and ObjectId.is_valid(i)]
            by_id = {
                str(r["_id"]): sanitize(r)
                for r in db[rel.collection].find({"_id": {"$in": obj_ids}}, rel.projection())
            }
            for d in docs:
                if rel.local_field in d:
                    d[rel.path] = by_id.get(d[rel.local_field])
    return docs

# endregion


def advanced_results(collection: str,
                     schema: Type[BaseModel],
                     populate: Sequence[Populate] = (),
                     scope: Optional[Dict[str, str]] = None):
    """ Dependency factory: run the request's query string against `collection`

    :param collection: collection name
    :param schema: document schema, used to parse numeric and boolean filter values
    :param populate: relations to expand
    :param scope: path parameter -> field; restricts the listing, e.g. {"bootcamp_id": "bootcamp_id"}
    """
    casts = field_casts(schema)

    def dependency(request: Request, db: Database = Depends(get_db)) -> Dict[str, Any]:
        params = request.query_params
        query = translate_query(params.multi_items(), casts)
        for path_param, field in (scope or {}).items():
            if path_param in request.path_params:
                query[field] = str(to_obj_id(request.path_params[path_param]))

        page = PageRequest.from_params(params.get("page"), params.get("limit"))

        # Count and fetch are separate reads; concurrent writes between them are tolerated
        total = db[collection].count_documents(query)
        cursor = db[collection].find(query, parse_select(params.get("select")))
        cursor = page.apply(cursor.sort(parse_sort(params.get("sort"))))
        docs = expand(db, list(cursor), populate)

        return {
            "success": True,
            "count": len(docs),
            "pagination": page.pagination(total),
            "data": [sanitize(d) for d in docs],
        }

    return dependency
