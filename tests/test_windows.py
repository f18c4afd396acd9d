"""Tests for rnamaps.core.windows.

Windows are checked against a track whose value at every position is the
coordinate itself, so each cell shows exactly which base it was read from.
"""

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from conftest import make_event
from rnamaps.core.errors import MalformedEventError
from rnamaps.core.events import (
    GenomicEvent,
    RegulatedEvent,
    RegulationCategory,
    Segment,
    SegmentLabel,
)
from rnamaps.core.track import SignalTrack
from rnamaps.core.windows import (
    BOUNDARY_TABLE,
    Boundary,
    ExonEnd,
    SignalMatrix,
    boundary_reach,
    build_matrix,
    extract_window,
    window_layout,
)
from rnamaps.utils.intervals import GenomicInterval

WIDTH = 351


def expected_mask(left: int, right: int) -> np.ndarray:
    """Mask with ``left`` and ``right`` padded cells."""
    mask = np.zeros(WIDTH, dtype=bool)
    mask[:left] = True
    mask[WIDTH - right :] = True
    return mask


# =============================================================================
# Boundary table and layout
# =============================================================================


class TestBoundaryTable:
    """Tests for the boundary dispatch table."""

    def test_every_boundary_has_a_spec(self):
        assert set(BOUNDARY_TABLE) == set(Boundary)

    def test_exon_ends(self):
        assert BOUNDARY_TABLE[Boundary.UPSTREAM_3P].end is ExonEnd.THREE_PRIME
        assert BOUNDARY_TABLE[Boundary.ALTERNATIVE_5P].end is ExonEnd.FIVE_PRIME
        assert BOUNDARY_TABLE[Boundary.ALTERNATIVE_3P].end is ExonEnd.THREE_PRIME
        assert BOUNDARY_TABLE[Boundary.DOWNSTREAM_5P].end is ExonEnd.FIVE_PRIME

    def test_anchor_positions(self):
        """Acceptor-side windows put 300 intronic columns first."""
        assert window_layout(Boundary.ALTERNATIVE_5P).anchor_position == 301
        assert window_layout(Boundary.DOWNSTREAM_5P).anchor_position == 301
        assert window_layout(Boundary.UPSTREAM_3P).anchor_position == 51
        assert window_layout(Boundary.ALTERNATIVE_3P).anchor_position == 51

    def test_layout_positions(self):
        positions = window_layout("alternative_3p").positions()
        assert positions[0] == 1
        assert positions[-1] == WIDTH
        assert positions.size == WIDTH


# =============================================================================
# Window extraction
# =============================================================================


class TestExtractWindowPlusStrand:
    """Window values on a plus-strand event (C1/A/C2 = 30/40/25 nt)."""

    def test_upstream_3p(self, plus_event, coordinate_track):
        window = extract_window(plus_event, Boundary.UPSTREAM_3P, track=coordinate_track)
        assert_array_equal(np.ma.getmaskarray(window), expected_mask(20, 0))
        assert_array_equal(window.compressed(), np.arange(999, 1330))
        # Anchor is the last base of C1
        assert window[50] == 1029

    def test_alternative_5p(self, plus_event, coordinate_track):
        window = extract_window(plus_event, Boundary.ALTERNATIVE_5P, coordinate_track)
        assert_array_equal(np.ma.getmaskarray(window), expected_mask(0, 10))
        assert_array_equal(window.compressed(), np.arange(1230, 1571))
        # Anchor is the first base of A
        assert window[300] == 1530

    def test_alternative_3p(self, plus_event, coordinate_track):
        window = extract_window(plus_event, Boundary.ALTERNATIVE_3P, coordinate_track)
        assert_array_equal(np.ma.getmaskarray(window), expected_mask(10, 0))
        assert_array_equal(window.compressed(), np.arange(1529, 1870))
        assert window[50] == 1569

    def test_downstream_5p(self, plus_event, coordinate_track):
        window = extract_window(plus_event, Boundary.DOWNSTREAM_5P, coordinate_track)
        assert_array_equal(np.ma.getmaskarray(window), expected_mask(0, 25))
        assert_array_equal(window.compressed(), np.arange(1770, 2096))
        assert window[300] == 2070


class TestExtractWindowMinusStrand:
    """Minus-strand windows are read in transcript orientation."""

    def test_alternative_5p(self, minus_event, coordinate_track):
        window = extract_window(minus_event, Boundary.ALTERNATIVE_5P, coordinate_track)
        assert_array_equal(np.ma.getmaskarray(window), expected_mask(0, 10))
        assert_array_equal(window.compressed(), np.arange(1864, 1523, -1))
        # First transcribed base of A on the minus strand
        assert window[300] == 1564

    def test_upstream_3p(self, minus_event, coordinate_track):
        window = extract_window(minus_event, Boundary.UPSTREAM_3P, coordinate_track)
        assert_array_equal(np.ma.getmaskarray(window), expected_mask(20, 0))
        assert_array_equal(window.compressed(), np.arange(2095, 1764, -1))
        assert window[50] == 2065

    def test_mirrors_plus_strand_layout(self, plus_event, minus_event, coordinate_track):
        """Both strands share the same mask for the same exon/intron widths."""
        for boundary in Boundary:
            plus = extract_window(plus_event, boundary, coordinate_track)
            minus = extract_window(minus_event, boundary, coordinate_track)
            assert_array_equal(np.ma.getmaskarray(plus), np.ma.getmaskarray(minus))

    def test_strand_specific_signal(self, minus_event):
        """Plus-strand signal never leaks into a minus-strand window."""
        track = SignalTrack()
        track.add("chr1", "+", 0, np.ones(4000))
        window = extract_window(minus_event, Boundary.ALTERNATIVE_5P, track)
        assert window.sum() == 0


class TestWindowInvariants:
    """Length and missing-value invariants across events and boundaries."""

    @pytest.mark.parametrize("strand", ["+", "-"])
    @pytest.mark.parametrize("boundary", list(Boundary))
    @pytest.mark.parametrize(
        "exon_widths, intron_widths",
        [
            ((30, 40, 25), (500, 500)),
            ((200, 60, 80), (1000, 2000)),
            ((5, 1, 5), (10, 299)),
            ((50, 50, 50), (300, 300)),
            ((12, 7, 90), (0, 45)),
        ],
    )
    def test_length_and_count(self, boundary, strand, exon_widths, intron_widths, coordinate_track):
        event = make_event(strand=strand, exon_widths=exon_widths, intron_widths=intron_widths)
        window = extract_window(event, boundary, coordinate_track)
        exon_n, intron_n = boundary_reach(event, boundary)

        assert window.shape == (WIDTH,)
        assert int(window.count()) == exon_n + intron_n + 1

        layout = window_layout(boundary)
        left, right = layout.padding(exon_n, intron_n)
        assert left + right == WIDTH - window.count()
        assert_array_equal(np.ma.getmaskarray(window), expected_mask(left, right))

    def test_reach_scenario(self, plus_event):
        """Exons 30/40/25 and introns 500/500: exon reach below cap, intron capped."""
        reaches = {b: boundary_reach(plus_event, b) for b in Boundary}
        assert reaches == {
            Boundary.UPSTREAM_3P: (30, 300),
            Boundary.ALTERNATIVE_5P: (40, 300),
            Boundary.ALTERNATIVE_3P: (40, 300),
            Boundary.DOWNSTREAM_5P: (25, 300),
        }
        padding = {
            b: window_layout(b).padding(*reaches[b]) for b in Boundary
        }
        assert padding == {
            Boundary.UPSTREAM_3P: (20, 0),
            Boundary.ALTERNATIVE_5P: (0, 10),
            Boundary.ALTERNATIVE_3P: (10, 0),
            Boundary.DOWNSTREAM_5P: (0, 25),
        }

    def test_short_intron_pads_intron_side(self, coordinate_track):
        event = make_event(intron_widths=(120, 500))
        acceptor = extract_window(event, Boundary.ALTERNATIVE_5P, coordinate_track)
        donor = extract_window(event, Boundary.UPSTREAM_3P, coordinate_track)
        assert_array_equal(np.ma.getmaskarray(acceptor), expected_mask(180, 10))
        assert_array_equal(np.ma.getmaskarray(donor), expected_mask(20, 180))

    def test_zero_width_intron(self, coordinate_track):
        """Touching exons give an intron reach of 0 rather than an error."""
        event = make_event(intron_widths=(0, 500))
        window = extract_window(event, Boundary.ALTERNATIVE_5P, coordinate_track)
        assert int(window.count()) == 41
        assert_array_equal(np.ma.getmaskarray(window), expected_mask(300, 10))

    def test_custom_reach(self, plus_event, coordinate_track):
        window = extract_window(
            plus_event, Boundary.ALTERNATIVE_5P, coordinate_track, exon_reach=10, intron_reach=20
        )
        assert window.shape == (31,)
        assert window.count() == 31
        assert window[20] == 1530

    def test_negative_reach(self, plus_event, coordinate_track):
        with pytest.raises(ValueError, match="Reaches"):
            extract_window(plus_event, Boundary.ALTERNATIVE_5P, coordinate_track, exon_reach=-1)


class TestMalformedEvents:
    """MalformedEventError reporting."""

    def test_missing_segment_names_event(self, coordinate_track):
        event = GenomicEvent(
            "broken",
            [
                Segment(SegmentLabel.C1, GenomicInterval("chr1", 100, 200)),
                Segment(SegmentLabel.A, GenomicInterval("chr1", 700, 760)),
            ],
        )
        # Boundaries that don't involve C2 still work
        extract_window(event, Boundary.UPSTREAM_3P, coordinate_track)
        with pytest.raises(MalformedEventError) as excinfo:
            extract_window(event, Boundary.DOWNSTREAM_5P, coordinate_track)
        assert excinfo.value.event_id == "broken"

    def test_misordered_segments(self, coordinate_track):
        event = GenomicEvent(
            "swapped",
            [
                Segment(SegmentLabel.C1, GenomicInterval("chr1", 900, 1000)),
                Segment(SegmentLabel.A, GenomicInterval("chr1", 100, 200)),
                Segment(SegmentLabel.C2, GenomicInterval("chr1", 1500, 1600)),
            ],
        )
        with pytest.raises(MalformedEventError, match="swapped"):
            extract_window(event, Boundary.ALTERNATIVE_5P, coordinate_track)


# =============================================================================
# Signal matrices
# =============================================================================


class TestBuildMatrix:
    """Tests for build_matrix and SignalMatrix."""

    def test_rows_in_input_order(self, coordinate_track):
        events = [make_event("e1"), make_event("e2", intron_widths=(100, 100))]
        matrix = build_matrix(events, Boundary.ALTERNATIVE_5P, coordinate_track)
        assert matrix.event_ids == ("e1", "e2")
        assert matrix.values.shape == (2, WIDTH)
        assert matrix.categories == (None, None)
        assert matrix.values[1].count() == 100 + 40 + 1

    def test_categories_from_records(self, coordinate_track):
        records = [
            RegulatedEvent(make_event("e1"), RegulationCategory.ENHANCED),
            RegulatedEvent(make_event("e2"), RegulationCategory.NON_REGULATED),
        ]
        matrix = build_matrix(records, Boundary.UPSTREAM_3P, coordinate_track)
        assert matrix.categories == (RegulationCategory.ENHANCED, RegulationCategory.NON_REGULATED)
        enhanced = matrix.select(RegulationCategory.ENHANCED)
        assert enhanced.event_ids == ("e1",)
        assert enhanced.n_events == 1

    def test_empty_input(self, coordinate_track):
        matrix = build_matrix([], Boundary.UPSTREAM_3P, coordinate_track)
        assert matrix.values.shape == (0, WIDTH)
        assert matrix.column_means().mask.all()

    def test_column_means_skip_missing(self):
        values = np.ma.MaskedArray(
            [[1.0, 2.0, 0.0], [3.0, 0.0, 0.0]],
            mask=[[False, False, True], [False, True, True]],
        )
        matrix = SignalMatrix(values, ["a", "b"], [None, None])
        means = matrix.column_means()
        assert means[0] == 2.0
        assert means[1] == 2.0
        assert means.mask[2]

    def test_nan_counts_as_missing(self):
        matrix = SignalMatrix(np.array([[1.0, np.nan]]), ["a"], [None])
        assert np.ma.getmaskarray(matrix.values).tolist() == [[False, True]]

    def test_row_label_mismatch(self):
        with pytest.raises(ValueError, match="rows"):
            SignalMatrix(np.zeros((2, 3)), ["a"], [None, None])
