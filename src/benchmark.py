import math
import multiprocessing as mp
import queue
import random
import traceback
from collections import defaultdict
from typing import Callable

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from tqdm import tqdm

from crtfountain import Config, FountainError, PacketDecoder, PacketEncoder, bundle_size_for
from crtfountain.framing import OVERHEAD


def _corrupt(packet: bytes, rng: random.Random) -> bytes:
    damaged = bytearray(packet)
    pos = rng.randrange(len(damaged))
    damaged[pos] ^= rng.randrange(1, 256)
    return bytes(damaged)


def _run_transfer(
    length: int,
    rng: random.Random,
    loss_probability: float,
    corruption_probability: float,
    shuffle_window: int,
    packets_bound: int,
):
    """
    Send one random payload through a simulated channel.

    The channel drops packets, damages one byte of others, and reorders
    deliveries by holding up to ``shuffle_window`` packets in flight and
    releasing a random one. Returns (packets sent, data, recovered data or None).
    """
    data = bytes(rng.getrandbits(8) for _ in range(length))
    encoder = PacketEncoder(data)
    decoder = PacketDecoder()

    in_flight: list[bytes] = []
    sent = 0
    for _ in range(packets_bound):
        packet = encoder.next_packet()
        sent += 1

        if rng.random() < loss_probability:
            continue
        if rng.random() < corruption_probability:
            packet = _corrupt(packet, rng)

        in_flight.append(packet)
        if len(in_flight) < shuffle_window:
            continue

        decoder.deliver(in_flight.pop(rng.randrange(len(in_flight))))
        if decoder.is_complete():
            break
    else:
        # sender gave up; drain whatever is still in flight
        rng.shuffle(in_flight)
        for packet in in_flight:
            decoder.deliver(packet)

    if not decoder.is_complete():
        return sent, data, None
    return sent, data, decoder.recover_data()


def _run_benchmark_chunk(
    length: int,
    passes: int,
    loss_probability: float,
    corruption_probability: float,
    shuffle_window: int,
    packets_bound: int,
    seed: int | None,
    progress_reporter: Callable[[int], None] | None = None,
    progress_step: int = 10,
):
    """Run a benchmark slice and optionally report progress via `progress_reporter`."""
    rng = random.Random(seed)
    packets_to_recover = defaultdict(lambda: 0)
    failures = 0
    mismatches = 0

    processed = 0
    reported = 0
    step = max(1, progress_step)

    for _ in range(passes):
        processed += 1

        try:
            sent, data, recovered = _run_transfer(
                length,
                rng,
                loss_probability,
                corruption_probability,
                shuffle_window,
                packets_bound,
            )
        except FountainError:
            # a corrupted packet slipped past the checksum
            mismatches += 1
        else:
            if recovered is None:
                failures += 1
            elif recovered != data:
                mismatches += 1
            else:
                packets_to_recover[sent] += 1

        if progress_reporter and (processed - reported >= step):
            progress_reporter(processed - reported)
            reported = processed

    if progress_reporter and processed > reported:
        progress_reporter(processed - reported)

    return {
        "distribution_counts": dict(packets_to_recover),
        "failures": failures,
        "mismatches": mismatches,
    }


def _worker_entry(
    chunk_args: tuple,
    progress_queue: mp.Queue,
    progress_step: int,
    result_queue: mp.Queue,
    error_queue: mp.Queue,
):
    def report(delta: int):
        progress_queue.put(delta)

    try:
        result = _run_benchmark_chunk(*chunk_args, report, progress_step)
    except Exception:
        # Surface worker failures to the master so it can halt everything immediately.
        error_queue.put(traceback.format_exc())
        return

    progress_queue.put(None)
    result_queue.put(result)


def _finalize_results(worker_results: list[dict], length: int, loss_probability: float):
    merged = defaultdict(int)
    failures = 0
    mismatches = 0
    for res in worker_results:
        for k, v in res["distribution_counts"].items():
            merged[k] += v
        failures += res["failures"]
        mismatches += res["mismatches"]

    if failures:
        print(f"{failures} failures.")
    if mismatches:
        print(f"{mismatches} MISMATCHES!!!")

    successes = sum(merged.values())
    distribution = {k: v / successes for k, v in merged.items()} if successes else {}
    return {
        "distribution": distribution,
        "length": length,
        "loss_probability": loss_probability,
        "failures": failures,
        "mismatches": mismatches,
    }


def benchmark(
    length: int,
    passes: int = 20,
    loss_probability: float = 0.2,
    corruption_probability: float = 0.05,
    shuffle_window: int = 4,
    packets_bound: int = 1000,
    processes: int | None = 1,
    progress_update: int = 10,
    seed: int | None = None,
):
    """
    Measure how many packets a framed transfer of ``length`` random bytes
    needs over a lossy, corrupting and reordering channel.

    Returns a dict whose "distribution" maps packets-sent-until-complete to
    its observed probability.
    """
    total_passes = max(0, int(passes))
    if total_passes == 0:
        return _finalize_results([], length, loss_probability)

    if processes is None:
        processes = min(mp.cpu_count() or 1, total_passes)
    processes = max(1, min(int(processes), total_passes))

    def chunk_args(worker_passes: int, worker_seed: int | None) -> tuple:
        return (
            length,
            worker_passes,
            loss_probability,
            corruption_probability,
            shuffle_window,
            packets_bound,
            worker_seed,
        )

    if processes == 1:
        with tqdm(total=total_passes, desc="benchmark") as pbar:
            result = _run_benchmark_chunk(
                *chunk_args(total_passes, seed), pbar.update, progress_update
            )
        return _finalize_results([result], length, loss_probability)

    ctx = mp.get_context("spawn")
    progress_queue: mp.Queue = ctx.Queue()
    result_queue: mp.Queue = ctx.Queue()
    error_queue: mp.Queue = ctx.Queue()

    base, remainder = divmod(total_passes, processes)
    passes_per_worker = [base + (1 if i < remainder else 0) for i in range(processes)]
    passes_per_worker = [p for p in passes_per_worker if p > 0]

    procs = []
    for i, worker_passes in enumerate(passes_per_worker):
        worker_seed = None if seed is None else seed + i
        p = ctx.Process(
            target=_worker_entry,
            args=(
                chunk_args(worker_passes, worker_seed),
                progress_queue,
                progress_update,
                result_queue,
                error_queue,
            ),
        )
        p.start()
        procs.append(p)

    finished = 0
    worker_error = None
    with tqdm(total=total_passes, desc="benchmark") as pbar:
        while finished < len(passes_per_worker):
            try:
                worker_error = error_queue.get_nowait()
            except queue.Empty:
                worker_error = None
            if worker_error is not None:
                break

            try:
                msg = progress_queue.get(timeout=0.1)
            except queue.Empty:
                continue
            if msg is None:
                finished += 1
            else:
                pbar.update(int(msg))

    if worker_error is not None:
        print("Benchmark worker failed with an exception:")
        print(worker_error)
        for p in procs:
            if p.is_alive():
                p.terminate()
        for p in procs:
            p.join()
        raise RuntimeError("Benchmark worker failed; see worker traceback above.")

    worker_results = [result_queue.get() for _ in passes_per_worker]
    for p in procs:
        p.join()

    return _finalize_results(worker_results, length, loss_probability)


def compute_distribution_stats(benchmark_result: dict):
    """
    Take the dict returned by benchmark() and derive:
        - plot_df: packets-to-recover distribution with missing buckets filled
        - metrics: expected packets, transmitted bytes, efficiency, redundancy
    """
    distribution = benchmark_result.get("distribution", {})
    if not distribution:
        raise ValueError("Empty distribution provided")

    length = benchmark_result["length"]
    loss_probability = benchmark_result["loss_probability"]

    df = pd.DataFrame(list(distribution.items()), columns=["packets", "prob"])
    df = df.astype({"packets": "int64", "prob": float})
    df = df.sort_values("packets").reset_index(drop=True)

    p_min = int(df["packets"].min())
    p_max = int(df["packets"].max())

    # Fill missing buckets
    full_idx = pd.Series(range(p_min, p_max + 1), name="packets")
    df_plot = pd.DataFrame({"packets": full_idx.astype("int64")})
    df_plot = df_plot.merge(df, on="packets", how="left").fillna(0)

    packets = df["packets"].to_numpy(dtype=float)
    probs = df["prob"].to_numpy(dtype=float)
    total = probs.sum()
    if abs(total - 1.0) > 1e-8:
        probs = probs / total
    expected_packets = float(np.sum(packets * probs))

    bundle_size = bundle_size_for(length)
    min_bundles = Config.create(length, bundle_size).min_bundles
    packet_size = bundle_size + OVERHEAD
    transmitted_bytes = expected_packets * packet_size
    permeability = 1.0 - loss_probability
    ideal_packets = expected_packets * permeability

    return {
        "plot_df": df_plot,
        "metrics": {
            "basic": {
                "payload_bytes": length,
                "bundle_size": bundle_size,
                "packet_size": packet_size,
                "min_bundles": min_bundles,
                "expected_packets_to_recover": expected_packets,
                "packets_range": (p_min, p_max),
            },
            "derived": {
                "transmitted_bytes": transmitted_bytes,
                "byte_efficiency": length / transmitted_bytes,
                "packet_redundancy": expected_packets - min_bundles,
                "permeability": permeability,
                "ideal_packets_to_recover": ideal_packets,
                "ideal_packet_redundancy": ideal_packets - min_bundles,
                "ideal_byte_efficiency": length / (ideal_packets * packet_size),
                "log2_packets_spread": math.log2(p_max - p_min + 1),
            },
        },
    }


def distribution_figure(stats) -> go.Figure:
    plot_df = stats["plot_df"]
    expected = stats["metrics"]["basic"]["expected_packets_to_recover"]

    fig = go.Figure()

    # Probability bars
    fig.add_trace(
        go.Bar(
            x=plot_df["packets"],
            y=plot_df["prob"],
            name="probability",
            marker_color="steelblue",
            opacity=0.6,
        )
    )

    # Vertical expected value line
    ymax = float(plot_df["prob"].max())
    fig.add_shape(
        type="line",
        x0=expected,
        x1=expected,
        y0=0,
        y1=ymax,
        line=dict(color="green", width=2, dash="dash"),
    )

    fig.update_layout(
        title="Packets-to-Recover Distribution",
        xaxis_title="packets sent until complete",
        yaxis_title="probability",
        template="plotly_white",
    )
    return fig


def render_distribution(stats):
    plot_df = stats["plot_df"]
    if plot_df is None or plot_df.empty:
        print("Nothing to plot.")
        return
    distribution_figure(stats).show()


def visual_benchmark(length: int, **kwargs):
    return compute_distribution_stats(benchmark(length, **kwargs))


if __name__ == "__main__":
    stats = visual_benchmark(4096, passes=20, seed=1)
    for group, values in stats["metrics"].items():
        print(f"== {group}")
        for k, v in values.items():
            print(f"{k:>28}: {v}")
    render_distribution(stats)
