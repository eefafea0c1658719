"""
Field and relationship text search.

A SearchConfig is a small tree: the local columns to match plus, per relationship,
another SearchConfig for the related model. One recursive builder turns the tree
into a single OR'ed SQL predicate, so dotted relation paths of any depth work the
same way as direct fields.

    SearchConfig.from_mapping({
        "fields": ["name"],
        "relations": {"products": {"fields": ["name", "sku"]}},
    })

The flat legacy form is accepted as well and folded into the tree:

    {"fields": [...], "relationships": {"rel": [...]}, "nested_relationships": {"a.b": [...]}}
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import or_
from sqlalchemy.sql.elements import ColumnElement


@dataclass(frozen=True)
class SearchConfig:
    fields: tuple[str, ...] = ()
    relations: Mapping[str, "SearchConfig"] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        for name, sub in self.relations.items():
            if not isinstance(sub, SearchConfig):
                raise TypeError(f"Relation {name!r} must map to a SearchConfig.")
            if sub.is_empty():
                raise ValueError(f"Relation {name!r} has nothing to search.")

    def is_empty(self) -> bool:
        return not self.fields and not self.relations

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "SearchConfig":
        fields = list(mapping.get("fields") or [])
        relations: dict[str, SearchConfig] = {}
        for name, sub in (mapping.get("relations") or {}).items():
            relations[name] = sub if isinstance(sub, SearchConfig) else cls.from_mapping(sub)

        for name, rel_fields in (mapping.get("relationships") or {}).items():
            relations[name] = _merge(relations.get(name), cls(fields=tuple(rel_fields)))

        for path, rel_fields in (mapping.get("nested_relationships") or {}).items():
            parts = [p for p in path.split(".") if p]
            if not parts:
                raise ValueError(f"Empty relation path {path!r}.")
            node = cls(fields=tuple(rel_fields))
            for part in reversed(parts[1:]):
                node = cls(relations={part: node})
            relations[parts[0]] = _merge(relations.get(parts[0]), node)

        return cls(fields=tuple(fields), relations=relations)

    def predicate(self, model: type, term: str) -> ColumnElement[bool] | None:
        """OR of case-insensitive substring matches over fields and relations; None if nothing to search."""
        clauses: list[ColumnElement[bool]] = []
        for name in self.fields:
            column = getattr(model, name)
            clauses.append(column.icontains(term, autoescape=True))

        mapper = sa_inspect(model)
        for name, sub in self.relations.items():
            rel = mapper.relationships[name]
            sub_predicate = sub.predicate(rel.mapper.class_, term)
            if sub_predicate is None:
                continue
            attr = getattr(model, name)
            clauses.append(attr.any(sub_predicate) if rel.uselist else attr.has(sub_predicate))

        if not clauses:
            return None
        return or_(*clauses)

    def matches(self, record: Any, term: str) -> bool:
        """Same semantics as predicate(), evaluated over loaded objects."""
        if not term:
            return True
        needle = term.casefold()
        for name in self.fields:
            value = getattr(record, name, None)
            if value is not None and needle in str(value).casefold():
                return True
        for name, sub in self.relations.items():
            related = getattr(record, name, None)
            if related is None:
                continue
            items: Iterable[Any] = related if isinstance(related, (list, tuple, set)) else (related,)
            if any(sub.matches(item, term) for item in items):
                return True
        return False


def _merge(a: SearchConfig | None, b: SearchConfig) -> SearchConfig:
    if a is None:
        return b
    fields = tuple(dict.fromkeys(a.fields + b.fields))
    relations = dict(a.relations)
    for name, sub in b.relations.items():
        relations[name] = _merge(relations.get(name), sub)
    return SearchConfig(fields=fields, relations=relations)


DEFAULT_SEARCH = SearchConfig(fields=("name",))
