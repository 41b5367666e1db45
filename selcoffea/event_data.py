"""Per-event data model: objects, collections, the reference point and the event store.

Objects are plain Python records built from one event's slice of an
awkward chunk.  Decorations written by the selectors live on the object
itself, so every later criterion (and every later algorithm in the chain)
sees them for the rest of the event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import awkward as ak
import numpy as np

from selcoffea.errors import DuplicateRecordError, MissingUpstreamData

logger = logging.getLogger(__name__)

# object-record field -> TrackParticle attribute
TRACK_FIELDS = {
    "d0": "d0",
    "z0": "z0",
    "vz": "vz",
    "theta": "theta",
    "d0Var": "d0_variance",
}

PRIMARY_VERTEX_TYPE = 1


@dataclass(frozen=True)
class TrackParticle:
    """Track parameters; ``vz``, ``theta`` and ``d0_variance`` are None when the input lacks them."""

    d0: float
    z0: float
    vz: float | None = None
    theta: float | None = None
    d0_variance: float | None = None

    @property
    def d0_significance(self) -> float | None:
        if self.d0_variance is None:
            return None
        if self.d0_variance <= 0:
            return float("inf")
        return float(np.abs(self.d0) / np.sqrt(self.d0_variance))

    def z0_sintheta(self, vertex_z: float) -> float | None:
        if self.vz is None or self.theta is None:
            return None
        return float((self.z0 + self.vz - vertex_z) * np.sin(self.theta))


@dataclass(eq=False)
class PhysicsObject:
    """One reconstructed candidate (electron or muon) for one event and one variation.

    ``attributes`` is the read-only identity/quality bundle (author, OQ,
    clusterEta, muonType, isolation variables, ...).  ``decorations`` is
    written by the selectors.  Objects compare by identity.
    """

    pt: float
    eta: float
    phi: float = 0.0
    track: TrackParticle | None = None
    attributes: dict = field(default_factory=dict)
    decorations: dict = field(default_factory=dict)

    def decorate(self, key, value):
        self.decorations[key] = value

    def decoration(self, key, default=None):
        return self.decorations.get(key, default)

    def flag(self, key) -> bool:
        """Truth value of a decoration, falling back to an input attribute of the same name."""
        if key in self.decorations:
            return bool(self.decorations[key])
        return bool(self.attributes.get(key, False))

    def to_record(self) -> dict:
        record = {"pt": self.pt, "eta": self.eta, "phi": self.phi}
        if self.track is not None:
            for column, attr in TRACK_FIELDS.items():
                if getattr(self.track, attr) is not None:
                    record[column] = getattr(self.track, attr)
        record.update(self.attributes)
        record.update(self.decorations)
        return record


class ObjectCollection(list):
    """Insertion-ordered sequence of PhysicsObject references."""

    def __repr__(self):
        return f"ObjectCollection({len(self)} objects)"


@dataclass(frozen=True)
class ReferencePoint:
    x: float
    y: float
    z: float


def object_from_record(record: dict) -> PhysicsObject:
    """Build a PhysicsObject from one flat record (one element of a jagged collection)."""

    record = dict(record)
    try:
        kinematics = {name: float(record.pop(name)) for name in ("pt", "eta")}
    except KeyError as e:
        raise MissingUpstreamData(f"Object record is missing kinematic field {e}") from e
    kinematics["phi"] = float(record.pop("phi", 0.0) or 0.0)

    track = None
    track_values = {attr: record.pop(column) for column, attr in TRACK_FIELDS.items() if column in record}
    if track_values.get("d0") is not None and track_values.get("z0") is not None:
        track = TrackParticle(**{k: float(v) for k, v in track_values.items() if v is not None})

    return PhysicsObject(track=track, attributes=record, **kinematics)


def collection_from_records(records) -> ObjectCollection:
    return ObjectCollection(object_from_record(r) for r in records)


def collection_from_awkward(array) -> ObjectCollection:
    """Convert one event's record list (an awkward array or plain list) to a collection."""
    return collection_from_records(ak.to_list(array))


def collection_to_awkward(collection) -> ak.Array:
    """Flatten a collection (attributes + decorations) back into an awkward record array."""
    return ak.Array([obj.to_record() for obj in collection])


def primary_vertex(vertices) -> ReferencePoint:
    """Return the first vertex flagged as primary (``vertexType == 1``)."""

    for vtx in vertices or ():
        if int(vtx.get("vertexType", -1)) == PRIMARY_VERTEX_TYPE:
            if vtx.get("z") is None:
                raise MissingUpstreamData("Primary vertex has no 'z' position.")
            return ReferencePoint(float(vtx.get("x", 0.0)), float(vtx.get("y", 0.0)), float(vtx["z"]))
    raise MissingUpstreamData("No primary vertex (vertexType == 1) found in the vertex container.")


class EventStore:
    """Event-scoped key -> object store shared by every algorithm of the chain.

    Holds input collections, upstream variation-label lists, EventInfo and
    the outputs recorded by selectors.  A key can be recorded only once
    per event.
    """

    def __init__(self, items=None):
        self._items = {}
        for key, value in (items or {}).items():
            self.record(value, key)

    def record(self, obj, key: str):
        if key in self._items:
            raise DuplicateRecordError(f"Event store already holds an object under key '{key}'.")
        self._items[key] = obj
        logger.debug("Recorded '%s' in event store", key)

    def retrieve(self, key: str):
        try:
            return self._items[key]
        except KeyError:
            raise MissingUpstreamData(
                f"'{key}' is not available in the event store. Available keys: {sorted(self._items)}"
            ) from None

    def contains(self, key: str) -> bool:
        return key in self._items

    def __len__(self):
        return len(self._items)


@dataclass
class EventContext:
    """One event as seen by the algorithm chain."""

    store: EventStore
    index: int = 0
    skipped: bool = False

    def skip(self):
        """Ask the driver to stop processing this event after the current algorithm."""
        self.skipped = True
