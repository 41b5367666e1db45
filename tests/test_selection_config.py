"""Tests for selcoffea.selection_config: option resolution and validation."""

import dataclasses

import pytest

from selcoffea.errors import ConfigurationError
from selcoffea.selection_config import (
    CUT_BASED_OPERATING_POINTS,
    LH_OPERATING_POINTS,
    UNSET_BOUND,
    ElectronSelectionConfig,
    MuonSelectionConfig,
    parse_decor_keys,
)


class TestParseDecorKeys:
    def test_empty(self):
        assert parse_decor_keys("") == ()
        assert parse_decor_keys(None) == ()

    def test_splits_and_strips(self):
        assert parse_decor_keys("isLoose, overlaps ,") == ("isLoose", "overlaps")


class TestCommonOptions:
    def test_defaults(self):
        cfg = ElectronSelectionConfig.from_mapping("eleSel", {"InputContainer": "Electrons"})
        assert cfg.input_container == "Electrons"
        assert cfg.use_cutflow is True
        assert cfg.decorate_selected_objects is True
        assert cfg.create_selected_container is False
        assert cfg.n_to_process is None
        assert cfg.pass_min is None
        assert cfg.pass_max is None
        assert cfg.pt_min is None
        assert cfg.fanout is False
        assert cfg.output_algo_syst_names == "eleSel_Syst"

    def test_empty_input_container_rejected(self):
        with pytest.raises(ConfigurationError, match="InputContainer"):
            MuonSelectionConfig.from_mapping("muSel", {})

    def test_create_selected_requires_output(self):
        with pytest.raises(ConfigurationError, match="OutputContainer"):
            MuonSelectionConfig.from_mapping(
                "muSel", {"InputContainer": "Muons", "CreateSelectedContainer": True},
            )

    def test_pass_min_above_pass_max_rejected(self):
        with pytest.raises(ConfigurationError, match="PassMin"):
            MuonSelectionConfig.from_mapping(
                "muSel", {"InputContainer": "Muons", "PassMin": 3, "PassMax": 1},
            )

    def test_legacy_unset_bound_maps_to_none(self):
        cfg = MuonSelectionConfig.from_mapping(
            "muSel", {"InputContainer": "Muons", "pTMax": UNSET_BOUND, "pTMin": 20},
        )
        assert cfg.pt_max is None
        assert cfg.pt_min == 20.0

    def test_negative_counts_disable(self):
        cfg = MuonSelectionConfig.from_mapping(
            "muSel", {"InputContainer": "Muons", "NToProcess": -1, "PassMin": -1, "PassMax": -1},
        )
        assert cfg.n_to_process is None
        assert cfg.pass_min is None
        assert cfg.pass_max is None

    def test_zero_pass_max_is_enforced(self):
        cfg = MuonSelectionConfig.from_mapping("muSel", {"InputContainer": "Muons", "PassMax": 0})
        assert cfg.pass_max == 0

    def test_string_flags(self):
        cfg = MuonSelectionConfig.from_mapping(
            "muSel", {"InputContainer": "Muons", "UseCutFlow": "false", "Debug": "True"},
        )
        assert cfg.use_cutflow is False
        assert cfg.debug is True

    def test_fanout_mode(self):
        cfg = MuonSelectionConfig.from_mapping(
            "muSel",
            {"InputContainer": "Muons", "InputAlgoSystNames": "MuonCalib_Syst", "OutputAlgoSystNames": "MuSel_Syst"},
        )
        assert cfg.fanout is True
        assert cfg.output_algo_syst_names == "MuSel_Syst"

    def test_default_output_syst_key_is_per_instance(self):
        first = MuonSelectionConfig.from_mapping("muSelLoose", {"InputContainer": "Muons"})
        second = MuonSelectionConfig.from_mapping("muSelTight", {"InputContainer": "Muons"})
        assert first.output_algo_syst_names == "muSelLoose_Syst"
        assert second.output_algo_syst_names == "muSelTight_Syst"

    def test_config_is_frozen(self):
        cfg = MuonSelectionConfig.from_mapping("muSel", {"InputContainer": "Muons"})
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.pt_min = 5.0


class TestElectronConfig:
    def test_isolation_type_defaults(self):
        cfg = ElectronSelectionConfig.from_mapping("eleSel", {"InputContainer": "Electrons"})
        assert cfg.track_iso_type == "ptvarcone20"
        assert cfg.calo_iso_type == "topoetcone20"
        assert cfg.isolation_wp == "Tight"

    @pytest.mark.parametrize("key,value", [
        ("LHOperatingPoint", "SuperTight"),
        ("CutBasedOperatingPoint", "Medium"),
        ("IsolationWP", "FixedCutTight"),
    ])
    def test_unknown_vocabulary_rejected(self, key, value):
        with pytest.raises(ConfigurationError, match=value):
            ElectronSelectionConfig.from_mapping("eleSel", {"InputContainer": "Electrons", key: value})

    def test_selected_wp_is_loosest_without_cut(self):
        cfg = ElectronSelectionConfig.from_mapping(
            "eleSel", {"InputContainer": "Electrons", "LHOperatingPoint": "Tight"},
        )
        assert cfg.selected_lh_wp == LH_OPERATING_POINTS[0]
        assert cfg.selected_cut_based_wp == CUT_BASED_OPERATING_POINTS[0]

    def test_selected_wp_with_cut(self):
        cfg = ElectronSelectionConfig.from_mapping(
            "eleSel",
            {"InputContainer": "Electrons", "DoLHPIDCut": True, "LHOperatingPoint": "Medium",
             "DoCutBasedPIDCut": True, "CutBasedOperatingPoint": "IsEMTight"},
        )
        assert cfg.selected_lh_wp == "Medium"
        assert cfg.selected_cut_based_wp == "IsEMTight"


class TestMuonConfig:
    def test_defaults(self):
        cfg = MuonSelectionConfig.from_mapping("muSel", {"InputContainer": "Muons"})
        assert cfg.muon_quality == "Medium"
        assert cfg.muon_type == ""
        assert cfg.track_iso_type == "ptcone20"
        assert cfg.calo_iso_type == "etcone20"

    def test_unknown_quality_rejected(self):
        with pytest.raises(ConfigurationError, match="muon quality"):
            MuonSelectionConfig.from_mapping("muSel", {"InputContainer": "Muons", "MuonQuality": "Ultra"})

    def test_unknown_type_rejected(self):
        with pytest.raises(ConfigurationError, match="muon type"):
            MuonSelectionConfig.from_mapping("muSel", {"InputContainer": "Muons", "MuonType": "Tagged"})

    def test_known_type(self):
        cfg = MuonSelectionConfig.from_mapping("muSel", {"InputContainer": "Muons", "MuonType": "Combined"})
        assert cfg.muon_type == "Combined"
