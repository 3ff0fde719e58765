"""Replication configuration schema and strict config-file decoding.

Config files are TOML. Decoding is fail-closed: a key that the schema does not
know, at any nesting level, aborts the operation with
``UnknownConfigFieldError`` naming every offending key.
"""
from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import List, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt

from .core.errors import ConfigurationError, UnknownConfigFieldError


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TableRule(_StrictModel):
    db_name: str = Field(default="", alias="db-name")
    tbl_name: str = Field(default="", alias="tbl-name")


class FilterRules(_StrictModel):
    do_dbs: List[str] = Field(default_factory=list, alias="do-dbs")
    ignore_dbs: List[str] = Field(default_factory=list, alias="ignore-dbs")
    do_tables: List[TableRule] = Field(default_factory=list, alias="do-tables")
    ignore_tables: List[TableRule] = Field(default_factory=list, alias="ignore-tables")


class DispatchRule(_StrictModel):
    db_name: str = Field(default="", alias="db-name")
    tbl_name: str = Field(default="", alias="tbl-name")
    rule: str = "default"


class ReplicaConfig(_StrictModel):
    filter_case_sensitive: bool = Field(default=False, alias="filter-case-sensitive")
    filter_rules: Optional[FilterRules] = Field(default=None, alias="filter-rules")
    ignore_txn_commit_ts: List[NonNegativeInt] = Field(default_factory=list, alias="ignore-txn-commit-ts")
    sink_dispatch_rules: List[DispatchRule] = Field(default_factory=list, alias="sink-dispatch-rules")


M = TypeVar("M", bound=BaseModel)


def _unknown_fields(exc: pydantic.ValidationError) -> List[str]:
    fields: List[str] = []
    for err in exc.errors():
        if err.get("type") != "extra_forbidden":
            continue
        # array positions are dropped: "filter-rules.do-tables.typo"
        dotted = ".".join(str(p) for p in err["loc"] if not isinstance(p, int))
        if dotted not in fields:
            fields.append(dotted)
    return fields


def strict_decode_file(path: str | os.PathLike[str], component: str, model: Type[M]) -> M:
    """Decode a TOML file into ``model``, rejecting keys the schema does not define."""
    path = Path(path)
    try:
        content = path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(
            f"cannot read config file {path}: {exc}", {"component": component}
        ) from exc
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(
            f"config file {path} is not valid TOML: {exc}", {"component": component}
        ) from exc

    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        unknown = _unknown_fields(exc)
        if unknown:
            raise UnknownConfigFieldError(component, str(path), unknown) from None
        raise ConfigurationError(
            f"config file {path} is invalid: {exc}", {"component": component}
        ) from exc
