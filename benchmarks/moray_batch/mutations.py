"""Mutation values applied uniformly to every object in an update step."""

from __future__ import annotations

import copy
import random
import string
from dataclasses import dataclass
from typing import Mapping, Protocol

from .config import DATACENTER_NAME_LENGTH, MAX_STORAGE_ID, STORAGE_DOMAIN_SUFFIX

_ALPHANUMERIC = string.ascii_letters + string.digits


@dataclass(frozen=True)
class MutationValue:
    datacenter: str
    storage_id: int

    @property
    def manta_storage_id(self) -> str:
        return storage_id_name(self.storage_id)


class MutationGenerator(Protocol):
    def next_value(self) -> MutationValue: ...


class RandomMutationGenerator:
    """Random alphanumeric datacenter plus a random 16-bit storage id."""

    def __init__(
        self,
        rng: random.Random | None = None,
        datacenter_length: int = DATACENTER_NAME_LENGTH,
    ) -> None:
        self._rng = rng or random.Random()
        self._datacenter_length = datacenter_length

    def next_value(self) -> MutationValue:
        return MutationValue(
            datacenter=random_string(self._rng, self._datacenter_length),
            storage_id=self._rng.randint(0, MAX_STORAGE_ID),
        )


def random_string(rng: random.Random, length: int) -> str:
    return "".join(rng.choices(_ALPHANUMERIC, k=length))


def storage_id_name(storage_id: int) -> str:
    return f"{storage_id}.{STORAGE_DOMAIN_SUFFIX}"


def apply_mutation(fields: dict, value: MutationValue) -> dict:
    """Return a copy of *fields* with the last shark replaced by *value*.

    Every other field is left alone, so applying the same value twice
    gives the same record as applying it once.
    """
    altered = copy.deepcopy(fields)
    sharks = list(altered.get("sharks", []))
    if sharks:
        sharks.pop()
    sharks.append({
        "datacenter": value.datacenter,
        "manta_storage_id": value.manta_storage_id,
    })
    altered["sharks"] = sharks
    return altered


def alter_objects(objects: Mapping[str, dict], value: MutationValue) -> dict[str, dict]:
    """Build the altered record for every object, keyed like *objects*."""
    return {key: apply_mutation(fields, value) for key, fields in objects.items()}
