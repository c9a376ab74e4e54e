"""Shared typing aliases used across modules."""

from collections.abc import Mapping
from typing import Any, TypeAlias

JSONDict: TypeAlias = dict[str, Any]
ThreadMessage: TypeAlias = dict[str, Any]
ChannelSignals: TypeAlias = Mapping[str, Any]
