"""Moray batch benchmark -- sequential single-object updates vs batched updates.

Seeds a bucket with synthetic Manta object records, then runs two passes.
Each pass alters every object twice, once per strategy, and prints how long
each strategy took. The second pass reverses the order so neither strategy
always runs against a freshly seeded (or freshly updated) table.
"""

from __future__ import annotations

import argparse
import enum
import random
from dataclasses import dataclass

from lib.moray_client import MemoryStoreClient, MorayBridgeClient, StoreClient

from ..base import BaseBenchmark
from .config import (
    BUCKET_INDEX,
    BUCKET_NAME,
    DEFAULT_BATCH_SIZE,
    DEFAULT_DOMAIN,
    DEFAULT_OBJECT_COUNT,
    DEFAULT_SHARD,
)
from .mutations import MutationGenerator, RandomMutationGenerator
from .objects import generate_objects, seed_objects
from .strategies import BATCH, SEQUENTIAL, StrategyTiming, UpdateRunner


class Phase(enum.Enum):
    INIT = "init"
    BUCKET_READY = "bucket-ready"
    SEEDED = "seeded"
    PASS_1 = "pass-1"
    PASS_2 = "pass-2"
    DONE = "done"
    FAILED = "failed"


PASSES: tuple[tuple[Phase, tuple[str, str]], ...] = (
    (Phase.PASS_1, (SEQUENTIAL, BATCH)),
    (Phase.PASS_2, (BATCH, SEQUENTIAL)),
)

_ORDER_LABELS = {
    (SEQUENTIAL, BATCH): "sequential first then batch",
    (BATCH, SEQUENTIAL): "batch first then sequential",
}


@dataclass
class PassResult:
    number: int
    order: tuple[str, str]
    sequential: StrategyTiming
    batch: StrategyTiming


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class BenchOrchestrator:
    """Drives Init -> BucketReady -> Seeded -> Pass1 -> Pass2 -> Done.

    Any error moves the orchestrator to ``Phase.FAILED`` and is re-raised.
    """

    def __init__(
        self,
        client: StoreClient,
        *,
        bucket: str = BUCKET_NAME,
        object_count: int = DEFAULT_OBJECT_COUNT,
        batch_size: int = DEFAULT_BATCH_SIZE,
        generator: MutationGenerator | None = None,
        rng: random.Random | None = None,
        progress: bool = True,
    ) -> None:
        self.client = client
        self.bucket = bucket
        self.object_count = object_count
        self.batch_size = batch_size
        self.rng = rng or random.Random()
        self.generator = generator or RandomMutationGenerator(self.rng)
        self.progress = progress

        self.state = Phase.INIT
        self.objects: dict[str, dict] = {}
        self.results: list[PassResult] = []
        self._runner = UpdateRunner(client, bucket)

    def run(self) -> list[PassResult]:
        try:
            self._ensure_bucket()
            self._seed()
            for number, (phase, order) in enumerate(PASSES, start=1):
                self.results.append(self._run_pass(number, phase, order))
        except Exception:
            self.state = Phase.FAILED
            raise
        self.state = Phase.DONE
        return self.results

    # ---- Phases -----------------------------------------------------------

    def _ensure_bucket(self) -> None:
        print("===get or create bucket===")
        bucket = self.client.get_or_create_bucket(self.bucket, BUCKET_INDEX)
        if bucket.created:
            print("Bucket Created Successfully")
        self.state = Phase.BUCKET_READY

    def _seed(self) -> None:
        print("Creating test objects")
        self.objects = generate_objects(self.object_count, self.rng)

        print("Seeding objects")
        seed_objects(self.client, self.bucket, self.objects, progress=self.progress)
        self.state = Phase.SEEDED

    def _run_pass(self, number: int, phase: Phase, order: tuple[str, str]) -> PassResult:
        prefix = "\n" if number > 1 else ""
        print(f"{prefix}==== pass {number}, {_ORDER_LABELS[order]} ====")
        self.state = phase

        timings = {strategy: self._run_strategy(strategy) for strategy in order}
        return PassResult(
            number=number,
            order=order,
            sequential=timings[SEQUENTIAL],
            batch=timings[BATCH],
        )

    def _run_strategy(self, strategy: str) -> StrategyTiming:
        value = self.generator.next_value()
        print(f"Altering objects.  datacenter: {value.datacenter} | storage id: {value.storage_id}")

        if strategy == SEQUENTIAL:
            print("Updating objects sequentially")
            timing = self._runner.update_sequential(self.objects, value)
            print(f"Done updating objects sequentially : {int(timing.elapsed_ms)}ms")
        else:
            print(f"Updating objects in batches of {self.batch_size}")
            timing = self._runner.update_batched(self.objects, value, self.batch_size)
            print(f"Done updating objects in batches: {int(timing.elapsed_ms)}ms")
        return timing


# ---------------------------------------------------------------------------
# Benchmark
# ---------------------------------------------------------------------------

class MorayBatchBenchmark(BaseBenchmark):
    name = "moray-batch"

    # ---- CLI registration -------------------------------------------------

    def register_args(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "--objects",
            type=int,
            default=DEFAULT_OBJECT_COUNT,
            help=f"Number of objects to seed (default: {DEFAULT_OBJECT_COUNT})",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=DEFAULT_BATCH_SIZE,
            help=f"Objects per batch request (default: {DEFAULT_BATCH_SIZE})",
        )
        parser.add_argument(
            "--bucket",
            type=str,
            default=BUCKET_NAME,
            help=f"Bucket to seed and update (default: {BUCKET_NAME})",
        )
        parser.add_argument(
            "--backend",
            choices=["bridge", "memory"],
            default="bridge",
            help="Store backend: a Moray bridge process, or in-process memory (default: bridge)",
        )
        parser.add_argument(
            "--shard",
            type=int,
            default=DEFAULT_SHARD,
            help=f"Moray shard number (default: {DEFAULT_SHARD})",
        )
        parser.add_argument(
            "--domain",
            type=str,
            default=DEFAULT_DOMAIN,
            help=f"DNS domain of the Moray shards (default: {DEFAULT_DOMAIN})",
        )
        parser.add_argument(
            "--bridge",
            type=str,
            default=None,
            help="Bridge command line (default: $MORAY_BRIDGE or moray-bridge on PATH)",
        )
        parser.add_argument(
            "--latency-ms",
            type=float,
            default=0.0,
            help="Simulated round trip per call for the memory backend (default: 0)",
        )
        parser.add_argument(
            "--seed",
            type=int,
            default=None,
            help="Random seed for object and mutation values",
        )
        parser.add_argument(
            "--no-progress",
            action="store_true",
            help="Disable the seeding progress bar",
        )

    # ---- Validate ---------------------------------------------------------

    def validate(self, args: argparse.Namespace) -> bool:
        if args.objects < 1:
            print("ERROR: --objects must be >= 1")
            return False
        if args.batch_size < 1:
            print("ERROR: --batch-size must be >= 1")
            return False
        if args.backend == "bridge":
            try:
                MorayBridgeClient.resolve_command(args.bridge)
            except FileNotFoundError as e:
                print(f"ERROR: {e}")
                return False
        return True

    # ---- Run --------------------------------------------------------------

    def run(self, args: argparse.Namespace) -> list[PassResult]:
        rng = random.Random(args.seed)
        with self._open_client(args) as client:
            orchestrator = BenchOrchestrator(
                client,
                bucket=args.bucket,
                object_count=args.objects,
                batch_size=args.batch_size,
                rng=rng,
                progress=not args.no_progress,
            )
            return orchestrator.run()

    # ---- Helpers ----------------------------------------------------------

    @staticmethod
    def _open_client(args: argparse.Namespace) -> StoreClient:
        if args.backend == "memory":
            return MemoryStoreClient(latency_s=args.latency_ms / 1000.0)
        return MorayBridgeClient(args.shard, args.domain, command=args.bridge)
