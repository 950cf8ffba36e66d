"""
Example script replaying a saved session.

This script loads a session file, replays its timeline, prints every
resolved action per slot and plots the cumulative potency of each slot over
time.
"""

import logging
import sys

import numpy as np
import matplotlib.pyplot as plt

from xivtimeline.common import MarkerType, format_ms
from xivtimeline.session import Session

SECS = 1000


def print_slot(session: Session, slot: int, tincture_multiplier: float):
    """
    Print the resolved nodes of one slot with their realized potency.

    Args:
        session: Loaded session
        slot: Slot index
        tincture_multiplier: Multiplier applied to nodes that snapshotted a tincture
    """
    resolver = session.state.resolver(tincture_multiplier)
    print(f"\nSlot {slot}:")
    for i, node in enumerate(session.timeline.nodes(slot)):
        result = resolver.resolve(node)
        potency = f"{result.total:8.1f}" if result is not None else "       -"
        start = format_ms(node.start_time) if node.start_time is not None else "?"
        reasons = ", ".join(reason.value for reason in node.invalid_reasons)
        procs = f" [{', '.join(node.procs)}]" if node.procs else ""
        print(f"[{i:03d}] {start:>10} {node.skill_id.name:<20} {potency}{procs} {reasons}")

    for warning in session.state.slots[slot].warnings:
        print(f"  ! {format_ms(warning.time)} {warning.kind.value} {warning.resource or ''} {warning.message}")


def cumulative_potency(session: Session, slot: int, tincture_multiplier: float):
    """
    Cumulative realized potency of one slot at each application time.

    Returns:
        tuple: Application times in seconds and cumulative potency values
    """
    resolver = session.state.resolver(tincture_multiplier)
    times = []
    values = []
    for node in session.timeline.nodes(slot):
        result = resolver.resolve(node)
        if result is None:
            continue
        times.append(node.application_time / SECS)
        values.append(result.total)
    order = np.argsort(times, kind="stable")
    return np.asarray(times)[order], np.cumsum(np.asarray(values)[order])


def plot_cumulative_potency(session: Session, tincture_multiplier: float, title="Cumulative Potency"):
    """
    Create a plot comparing the cumulative potency of every slot.

    Args:
        session: Loaded session
        tincture_multiplier: Multiplier applied to nodes that snapshotted a tincture
        title: Title for the plot
    """
    plt.figure(figsize=(12, 6))

    for slot in range(session.timeline.slot_count):
        times, totals = cumulative_potency(session, slot, tincture_multiplier)
        if len(times):
            plt.step(times, totals, where="post", label=f"slot {slot}")

    # Shade untargetable windows
    for marker in session.timeline.markers:
        if marker.marker_type == MarkerType.UNTARGETABLE:
            plt.axvspan(marker.time / SECS, (marker.time + marker.duration) / SECS, color="grey", alpha=0.2)

    plt.grid(True, linestyle="--", alpha=0.7)
    plt.xlabel("Time (seconds)")
    plt.ylabel("Potency")
    plt.title(title)
    plt.legend()
    plt.ylim(bottom=0)

    plt.savefig("cumulative_potency.png", dpi=300, bbox_inches="tight")
    plt.show()


def run_session(file_path: str, tincture_multiplier: float = 1.1, plot: bool = True):
    """
    Replay a saved session and report on it.

    Args:
        file_path: Path to the session JSON file
        tincture_multiplier: Multiplier applied to nodes that snapshotted a tincture
        plot: Whether to plot cumulative potency per slot

    Returns:
        list: Total potency per slot
    """
    session = Session.load(file_path)
    for warning in session.warnings:
        print(f"Warning: {warning}")

    config = session.config
    print(f"{config.job.name} level {config.level} at {config.fps:g} fps")
    for stat, (pre_tax, taxed) in config.speed_previews().items():
        print(f"  {stat.replace('_', ' ')} GCD {pre_tax}s ({taxed}s taxed)")
    print(f"Seed {config.random_seed}, proc mode {config.proc_mode.value}")

    totals = []
    for slot in range(session.timeline.slot_count):
        print_slot(session, slot, tincture_multiplier)
        totals.append(session.state.total_potency(slot, tincture_multiplier))

    print()
    for slot, total in enumerate(totals):
        print(f"Slot {slot} total potency: {total:,.1f}")

    if plot:
        plot_cumulative_potency(session, tincture_multiplier, title=f"{config.job.name} cumulative potency")
    return totals


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    run_session(sys.argv[1] if len(sys.argv) > 1 else "sessions/blm_opener.json")
