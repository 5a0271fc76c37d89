"""Synthetic Manta object records and the seeding phase that stores them."""

from __future__ import annotations

import base64
import random
import time
import uuid
from dataclasses import dataclass, field
from typing import Mapping

from tqdm import tqdm

from lib.moray_client import StoreClient

from .config import DATACENTER_NAME_LENGTH
from .mutations import random_string, storage_id_name


@dataclass
class StorageShark:
    datacenter: str
    manta_storage_id: str


@dataclass
class MantaObject:
    """Metadata record for one stored Manta object."""

    object_id: str
    owner: str
    dirname: str
    name: str
    content_length: int
    content_md5: str
    mtime: int
    content_type: str = "application/octet-stream"
    sharks: list[StorageShark] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.dirname}/{self.name}"

    def to_value(self) -> dict:
        """Field mapping as stored in the bucket (Moray camelCase names)."""
        return {
            "objectId": self.object_id,
            "owner": self.owner,
            "dirname": self.dirname,
            "name": self.name,
            "key": self.key,
            "type": "object",
            "contentLength": self.content_length,
            "contentMD5": self.content_md5,
            "contentType": self.content_type,
            "etag": self.object_id,
            "mtime": self.mtime,
            "headers": {},
            "roles": [],
            "sharks": [
                {"datacenter": s.datacenter, "manta_storage_id": s.manta_storage_id}
                for s in self.sharks
            ],
        }


def _uuid(rng: random.Random) -> str:
    return str(uuid.UUID(int=rng.getrandbits(128), version=4))


def random_object(rng: random.Random) -> MantaObject:
    owner = _uuid(rng)
    object_id = _uuid(rng)

    # Two copies: the first on storage node 1 or 2, the second on 3 or 4.
    sharks = []
    for i in range(2):
        shark_num = rng.randint(1 + i * 2, 2 + i * 2)
        sharks.append(StorageShark(
            datacenter=random_string(rng, DATACENTER_NAME_LENGTH),
            manta_storage_id=storage_id_name(shark_num),
        ))

    return MantaObject(
        object_id=object_id,
        owner=owner,
        dirname=f"/{owner}/stor/batch-test",
        name=f"obj-{object_id[:8]}",
        content_length=rng.randint(0, 1 << 20),
        content_md5=base64.b64encode(rng.getrandbits(128).to_bytes(16, "big")).decode("ascii"),
        mtime=int(time.time() * 1000),
        sharks=sharks,
    )


def generate_objects(count: int, rng: random.Random | None = None) -> dict[str, dict]:
    """Return *count* object records keyed by their unique objectId."""
    rng = rng or random.Random()
    objects: dict[str, dict] = {}
    while len(objects) < count:
        obj = random_object(rng)
        objects[obj.object_id] = obj.to_value()
    return objects


def seed_objects(
    client: StoreClient,
    bucket: str,
    objects: Mapping[str, dict],
    *,
    progress: bool = True,
) -> int:
    """Create every object in *bucket*, one call each. Stops at the first failure."""
    created = 0
    for key, fields in tqdm(objects.items(), desc="Seeding", disable=not progress):
        client.create_object(bucket, key, fields)
        created += 1
    return created
