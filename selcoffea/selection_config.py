"""Configuration for the electron and muon selector algorithms.

Keep the vocabularies and string keys here as the single source of truth.
Configs are resolved once per run from a plain key -> value mapping (the
key names follow the selector configuration table) and are immutable
afterwards.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from selcoffea.errors import ConfigurationError

# Legacy "unset" marker for numeric bounds.  Accepted on input only and
# mapped to ``None``; never compared against physical values.
UNSET_BOUND = 1e8

# --- Operating point vocabularies (ordered loosest -> tightest) -------------
LH_OPERATING_POINTS = ("VeryLoose", "Loose", "Medium", "Tight", "VeryTight")
CUT_BASED_OPERATING_POINTS = ("IsEMLoose", "IsEMMedium", "IsEMTight")

# Ordered as the muon quality enum: Tight=0, Medium=1, Loose=2, VeryLoose=3.
MUON_QUALITIES = ("Tight", "Medium", "Loose", "VeryLoose")

# Index in this tuple (minus the leading "") is the muon type enum value.
MUON_TYPES = ("", "Combined", "MuonStandAlone", "SegmentTagged", "CaloTagged", "SiliconAssociatedForwardMuon")

ELECTRON_ISOLATION_WPS = ("Loose", "Tight", "Gradient", "GradientLoose", "UserDefined")

# --- Decoration / store keys --------------------------------------------------
DECOR_PASS_SEL = "passSel"
DECOR_IS_ISOLATED = "isIsolated"
EVENT_INFO_KEY = "EventInfo"
EVENT_WEIGHT_KEY = "mcEventWeight"
VERTEX_CONTAINER_KEY = "PrimaryVertices"

# --- Detector constants ---------------------------------------------------------
AUTHOR_ELECTRON = 0x1
AUTHOR_AMBIGUOUS = 0x10
OQ_BAD_CLUSTER_MASK = 1446
CRACK_ETA_LOW = 1.37
CRACK_ETA_HIGH = 1.52


def parse_decor_keys(value: str | None) -> tuple[str, ...]:
    """Split a comma-separated key list, dropping empty segments."""

    if not value:
        return ()
    return tuple(token.strip() for token in value.split(",") if token.strip())


def _bound(config: Mapping, key: str) -> float | None:
    value = config.get(key)
    if value is None:
        return None
    value = float(value)
    if value == UNSET_BOUND:
        return None
    return value


def _count(config: Mapping, key: str, default: int = -1) -> int | None:
    """Integer option where a negative value means 'disabled'."""

    value = int(config.get(key, default))
    return value if value >= 0 else None


def _flag(config: Mapping, key: str, default: bool) -> bool:
    value = config.get(key, default)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _choice(config: Mapping, key: str, default: str, allowed: tuple[str, ...], what: str) -> str:
    value = config.get(key, default)
    value = "" if value is None else str(value)
    if value not in allowed:
        raise ConfigurationError(f"Unknown {what} requested '{value}'. Must be one of {list(allowed)}.")
    return value


@dataclass(frozen=True)
class SelectionConfig:
    """Options shared by every object selector."""

    name: str
    input_container: str
    output_container: str = ""
    input_algo_syst_names: str = ""
    output_algo_syst_names: str = ""
    event_info_name: str = EVENT_INFO_KEY
    vertex_container_name: str = VERTEX_CONTAINER_KEY
    debug: bool = False
    use_cutflow: bool = True
    decorate_selected_objects: bool = True
    create_selected_container: bool = False
    n_to_process: int | None = None
    pass_min: int | None = None
    pass_max: int | None = None
    pt_min: float | None = None
    pt_max: float | None = None
    eta_max: float | None = None
    d0_max: float | None = None
    d0sig_max: float | None = None
    z0sintheta_max: float | None = None
    do_isolation: bool = False
    track_iso_type: str = "ptcone20"
    track_iso_cut: float = 0.05
    calo_iso_type: str = "etcone20"
    calo_iso_cut: float = 0.05
    pass_decor_keys: tuple[str, ...] = field(default_factory=tuple)
    fail_decor_keys: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def _common_options(cls, name: str, config: Mapping, iso_defaults: tuple[str, str]) -> dict:
        input_container = str(config.get("InputContainer", "") or "")
        if not input_container:
            raise ConfigurationError(f"{name}: InputContainer is empty!")

        create_selected = _flag(config, "CreateSelectedContainer", False)
        output_container = str(config.get("OutputContainer", "") or "")
        if create_selected and not output_container:
            raise ConfigurationError(f"{name}: CreateSelectedContainer requires a non-empty OutputContainer.")

        pass_min = _count(config, "PassMin")
        pass_max = _count(config, "PassMax")
        if pass_min is not None and pass_max is not None and pass_min > pass_max:
            raise ConfigurationError(f"{name}: PassMin ({pass_min}) is larger than PassMax ({pass_max}).")

        track_type, calo_type = iso_defaults
        return {
            "name": name,
            "input_container": input_container,
            "output_container": output_container,
            "input_algo_syst_names": str(config.get("InputAlgoSystNames", "") or ""),
            "output_algo_syst_names": str(config.get("OutputAlgoSystNames") or f"{name}_Syst"),
            "event_info_name": str(config.get("EventInfoName", EVENT_INFO_KEY)),
            "vertex_container_name": str(config.get("VertexContainerName", VERTEX_CONTAINER_KEY)),
            "debug": _flag(config, "Debug", False),
            "use_cutflow": _flag(config, "UseCutFlow", True),
            "decorate_selected_objects": _flag(config, "DecorateSelectedObjects", True),
            "create_selected_container": create_selected,
            "n_to_process": _count(config, "NToProcess"),
            "pass_min": pass_min,
            "pass_max": pass_max,
            "pt_min": _bound(config, "pTMin"),
            "pt_max": _bound(config, "pTMax"),
            "eta_max": _bound(config, "etaMax"),
            "d0_max": _bound(config, "d0Max"),
            "d0sig_max": _bound(config, "d0sigMax"),
            "z0sintheta_max": _bound(config, "z0sinthetaMax"),
            "do_isolation": _flag(config, "DoIsolationCut", False),
            "track_iso_type": str(config.get("TrackBasedIsoType", track_type)),
            "track_iso_cut": float(config.get("TrackBasedIsoCut", 0.05)),
            "calo_iso_type": str(config.get("CaloBasedIsoType", calo_type)),
            "calo_iso_cut": float(config.get("CaloBasedIsoCut", 0.05)),
            "pass_decor_keys": parse_decor_keys(config.get("PassDecorKeys", "")),
            "fail_decor_keys": parse_decor_keys(config.get("FailDecorKeys", "")),
        }

    @property
    def fanout(self) -> bool:
        return bool(self.input_algo_syst_names)


@dataclass(frozen=True)
class ElectronSelectionConfig(SelectionConfig):
    veto_crack: bool = True
    do_author_cut: bool = True
    do_oq_cut: bool = True
    do_lh_pid_cut: bool = False
    lh_operating_point: str = "Loose"
    lh_config_year: str = "2015"
    do_cut_based_pid_cut: bool = False
    cut_based_operating_point: str = "IsEMLoose"
    cut_based_config_year: str = "2012"
    isolation_wp: str = "Tight"
    track_iso_type: str = "ptvarcone20"
    calo_iso_type: str = "topoetcone20"

    @classmethod
    def from_mapping(cls, name: str, config: Mapping | None = None) -> "ElectronSelectionConfig":
        """Resolve an electron selector configuration, validating operating points."""
        config = config or {}
        options = cls._common_options(name, config, ("ptvarcone20", "topoetcone20"))
        options.update(
            veto_crack=_flag(config, "VetoCrack", True),
            do_author_cut=_flag(config, "DoAuthorCut", True),
            do_oq_cut=_flag(config, "DoOQCut", True),
            do_lh_pid_cut=_flag(config, "DoLHPIDCut", False),
            lh_operating_point=_choice(config, "LHOperatingPoint", "Loose", LH_OPERATING_POINTS,
                                       "electron likelihood PID"),
            lh_config_year=str(config.get("LHConfigYear", "2015")),
            do_cut_based_pid_cut=_flag(config, "DoCutBasedPIDCut", False),
            cut_based_operating_point=_choice(config, "CutBasedOperatingPoint", "IsEMLoose",
                                              CUT_BASED_OPERATING_POINTS, "electron cut-based PID"),
            cut_based_config_year=str(config.get("CutBasedConfigYear", "2012")),
            isolation_wp=_choice(config, "IsolationWP", "Tight", ELECTRON_ISOLATION_WPS,
                                 "electron isolation working point"),
        )
        return cls(**options)

    @property
    def selected_lh_wp(self) -> str:
        # Without a hard cut the loosest WP is used so every object gets all decorations.
        return self.lh_operating_point if self.do_lh_pid_cut else LH_OPERATING_POINTS[0]

    @property
    def selected_cut_based_wp(self) -> str:
        return self.cut_based_operating_point if self.do_cut_based_pid_cut else CUT_BASED_OPERATING_POINTS[0]


@dataclass(frozen=True)
class MuonSelectionConfig(SelectionConfig):
    muon_quality: str = "Medium"
    muon_type: str = ""

    @classmethod
    def from_mapping(cls, name: str, config: Mapping | None = None) -> "MuonSelectionConfig":
        """Resolve a muon selector configuration, validating quality and type."""
        config = config or {}
        options = cls._common_options(name, config, ("ptcone20", "etcone20"))
        options.update(
            muon_quality=_choice(config, "MuonQuality", "Medium", MUON_QUALITIES, "muon quality"),
            muon_type=_choice(config, "MuonType", "", MUON_TYPES, "muon type"),
        )
        return cls(**options)
