"""
Binary spec and checkpoint files for crosslink species.

Layout (native byte order, no padding):

    header      magic "XLKM" | version H | kind B | anchors B | count I
    [engine]    rng_size Q | rng blob                (checkpoint files only)
    per crosslink:
      [rng]     rng_size Q | rng blob                (checkpoint files only)
      spec      is_doubly ? | diameter d | tether_length d | position 3d | orientation 3d
      anchor x2 bound ? | attached_oid q | lam d | position 3d | head B

A spec file restores the bound state and geometry of every crosslink. A
checkpoint additionally restores every RNG stream so a restarted run
continues with the same draws as an uninterrupted one.
"""

import struct
from pathlib import Path
from typing import BinaryIO, Dict, Optional

import numpy as np

from .crosslink import BindState
from .exceptions import CheckpointFormatError
from .units import N_ANCHORS
from .utils.logger import Logger

MAGIC = b"XLKM"
SCHEMA_VERSION = 1
KIND_SPEC = 0
KIND_CHECKPOINT = 1

HEADER = struct.Struct("=4sHBBI")
SIZE = struct.Struct("=Q")
XLINK_RECORD = struct.Struct("=?dd3d3d")
ANCHOR_RECORD = struct.Struct("=?qd3dB")


def _format_error(message: str) -> CheckpointFormatError:
    Logger.log(message, Logger.LogPriority.CRITICAL)
    return CheckpointFormatError(message)


def _read_exact(f: BinaryIO, n: int) -> bytes:
    data = f.read(n)
    if len(data) != n:
        raise _format_error(f"Truncated record: expected {n} bytes, got {len(data)}")
    return data


def _write_blob(f: BinaryIO, blob: bytes) -> None:
    f.write(SIZE.pack(len(blob)))
    f.write(blob)


def _read_blob(f: BinaryIO) -> bytes:
    (size,) = SIZE.unpack(_read_exact(f, SIZE.size))
    return _read_exact(f, size)


def _restore_rng(stream, blob: bytes) -> None:
    try:
        stream.set_state(blob)
    except (ValueError, KeyError, TypeError) as e:
        raise _format_error(f"Corrupt RNG state: {e}") from e


def write_crosslink_record(f: BinaryIO, xlink) -> None:
    f.write(XLINK_RECORD.pack(
        xlink.is_doubly,
        xlink.diameter,
        xlink.tether_length,
        *[float(v) for v in xlink.position],
        *[float(v) for v in xlink.orientation],
    ))
    for anchor in xlink.anchors:
        f.write(ANCHOR_RECORD.pack(
            anchor.bound,
            -1 if anchor.attached_oid is None else anchor.attached_oid,
            anchor.lam,
            *[float(v) for v in anchor.position],
            anchor.head,
        ))


def read_crosslink_record(f: BinaryIO, xlink, segment_lengths: Optional[Dict[int, float]] = None) -> None:
    """
    Restore one crosslink in place from a spec record.

    Tension and force of a doubly bound crosslink are rebuilt from the
    stored tether length, so motor heads walk at the loaded speed on the
    first step after a restore.

    Args:
        f: Open binary file positioned at the record.
        xlink: Crosslink to overwrite.
        segment_lengths: Length of every known segment by oid; bound
            anchors are checked against it when given.
    """
    fields = XLINK_RECORD.unpack(_read_exact(f, XLINK_RECORD.size))
    is_doubly, diameter, tether_length = fields[0], fields[1], fields[2]
    position = np.array(fields[3:6])
    orientation = np.array(fields[6:9])

    anchor_fields = [ANCHOR_RECORD.unpack(_read_exact(f, ANCHOR_RECORD.size)) for _ in range(N_ANCHORS)]
    heads = [a[6] for a in anchor_fields]
    if sorted(heads) != list(range(N_ANCHORS)):
        raise _format_error(f"crosslink {xlink.oid}: invalid head identities {heads}")

    by_head = {anchor.head: anchor for anchor in xlink.anchors}
    xlink.anchors = [by_head[h] for h in heads]
    for anchor, (bound, attached_oid, lam, x, y, z, _) in zip(xlink.anchors, anchor_fields):
        anchor.bound = bound
        anchor.attached_oid = attached_oid if attached_oid >= 0 else None
        anchor.lam = lam
        anchor.position = np.array([x, y, z])
        if not bound:
            anchor.orientation = np.zeros(3)

    if (xlink.state == BindState.DOUBLY) != is_doubly:
        raise _format_error(f"crosslink {xlink.oid}: is_doubly flag disagrees with anchor bound flags")
    if xlink.state == BindState.SINGLY and not xlink.anchors[0].bound:
        raise _format_error(f"crosslink {xlink.oid}: singly bound record is not canonical")

    xlink.diameter = diameter
    xlink.tether_length = tether_length if is_doubly else 0.0
    xlink.position = position
    xlink.orientation = orientation
    xlink.restore_tension()
    xlink.geometry_stale = True

    ok, error = xlink.check_invariants(segment_lengths)
    if not ok:
        raise _format_error(error)


def _write_header(f: BinaryIO, kind: int, count: int) -> None:
    f.write(HEADER.pack(MAGIC, SCHEMA_VERSION, kind, N_ANCHORS, count))


def _read_header(f: BinaryIO, kind: int, species) -> None:
    magic, version, file_kind, n_anchors, count = HEADER.unpack(_read_exact(f, HEADER.size))
    if magic != MAGIC:
        raise _format_error(f"Bad magic {magic!r}")
    if version != SCHEMA_VERSION:
        raise _format_error(f"Unsupported schema version {version}")
    if file_kind != kind:
        raise _format_error(f"Expected file kind {kind}, found {file_kind}")
    if n_anchors != N_ANCHORS:
        raise _format_error(f"Expected {N_ANCHORS} anchors per crosslink, found {n_anchors}")
    if count != len(species):
        raise _format_error(f"File holds {count} crosslinks, species '{species.name}' has {len(species)}")


def write_spec(path: Path, species) -> Path:
    """Write bound state and geometry of every crosslink."""
    path = Path(path)
    with open(path, "wb") as f:
        _write_header(f, KIND_SPEC, len(species))
        for xlink in species:
            write_crosslink_record(f, xlink)
    return path


def read_spec(path: Path, species, segment_lengths: Optional[Dict[int, float]] = None) -> None:
    with open(path, "rb") as f:
        _read_header(f, KIND_SPEC, species)
        for xlink in species:
            read_crosslink_record(f, xlink, segment_lengths)
        if f.read(1):
            raise _format_error("Trailing data after last crosslink record")
    Logger.log(f"Restored {len(species)} crosslinks from spec {path}", Logger.LogPriority.INFO)


def write_checkpoint(path: Path, species, engine=None) -> Path:
    """
    Write a checkpoint: spec records plus every RNG stream.

    Args:
        path: Output file.
        species: CrosslinkSpecies to save.
        engine: Kinetics engine whose own stream is saved too (optional;
            an empty blob is written without one).
    """
    path = Path(path)
    with open(path, "wb") as f:
        _write_header(f, KIND_CHECKPOINT, len(species))
        _write_blob(f, engine.rng.get_state() if engine is not None else b"")
        for xlink in species:
            _write_blob(f, xlink.rng.get_state())
            write_crosslink_record(f, xlink)
    return path


def read_checkpoint(path: Path, species, engine=None,
                    segment_lengths: Optional[Dict[int, float]] = None) -> None:
    with open(path, "rb") as f:
        _read_header(f, KIND_CHECKPOINT, species)
        engine_blob = _read_blob(f)
        if engine is not None and engine_blob:
            _restore_rng(engine.rng, engine_blob)
        for xlink in species:
            _restore_rng(xlink.rng, _read_blob(f))
            read_crosslink_record(f, xlink, segment_lengths)
        if f.read(1):
            raise _format_error("Trailing data after last crosslink record")
    Logger.log(f"Restored {len(species)} crosslinks from checkpoint {path}", Logger.LogPriority.INFO)
