"""
Centralized constants for the forward multiplicity pipeline.

Detector geometry, default binning and default cut values live here so that
the configuration schema, the collaborators and the tests agree on them.
"""

# ============================================================================
# Detector Geometry
# ============================================================================

# Ring geometry: (detector, ring) -> z position (cm), sectors, strips,
# inner radius (cm), outer radius (cm)
RING_GEOMETRY = {
    (1, 'I'): (320.0, 20, 512, 4.2, 17.2),
    (2, 'I'): (83.4, 20, 512, 4.2, 17.2),
    (2, 'O'): (75.2, 40, 256, 15.4, 28.0),
    (3, 'I'): (-62.8, 20, 512, 4.2, 17.2),
    (3, 'O'): (-75.2, 40, 256, 15.4, 28.0),
}

# ============================================================================
# Histogram Binning
# ============================================================================

ETA_BINS_DEFAULT = 200
ETA_MIN_DEFAULT = -4.0
ETA_MAX_DEFAULT = 6.0
PHI_BINS_DEFAULT = 20

VERTEX_BINS_DEFAULT = 10
VERTEX_MIN_DEFAULT = -10.0  # cm
VERTEX_MAX_DEFAULT = 10.0  # cm

# ============================================================================
# Event Inspection
# ============================================================================

LOW_FLUX_CUT_DEFAULT = 1000  # SPD clusters below this = low-flux event
CENTRALITY_UNSET = -1.0
SQRT_S_NN_DEFAULT = 0.0  # GeV, unknown

# ============================================================================
# Raw-Data Fixer
# ============================================================================

RECO_NOISE_FACTOR_DEFAULT = 4  # Noise factor assumed by the fixer
FALLBACK_NOISE_FACTOR = 4  # Used when the health probe disables noise/gain
NOISE_PER_STRIP_MIP = 0.03  # Typical noise/gain per strip in MIP units

# ============================================================================
# Sharing Filter
# ============================================================================

SHARING_LOW_CUT_DEFAULT = 0.15  # MIP, zero suppression
SHARING_LOW_CUT_LOW_FLUX_DEFAULT = 0.10  # MIP, zero suppression in low flux
SHARING_HIGH_CUT_DEFAULT = 0.70  # MIP, a strip below this may be shared

# ============================================================================
# Density Calculator
# ============================================================================

MAX_PARTICLES_DEFAULT = 20  # Strips above this many MIPs are saturated
MAX_OUTLIER_FRACTION_DEFAULT = 0.05
CENTRAL_OUTLIER_FRACTION_DEFAULT = 0.15
CENTRAL_CUT_DEFAULT = 10.0  # Centrality (%) below which an event is central

# ============================================================================
# Event Plane
# ============================================================================

EVENTPLANE_HARMONIC = 2
EVENTPLANE_ETA_GAP_DEFAULT = 1.0
EVENTPLANE_MIN_WEIGHT_DEFAULT = 1e-3

# ============================================================================
# Numerical Stability Constants
# ============================================================================

EPSILON = 1e-10  # Small value to prevent division by zero

# ============================================================================
# Export Constants
# ============================================================================

HISTOGRAM_FILENAME = 'forward_mult_histograms.npz'
EVENTS_FILENAME = 'forward_mult_events.csv'
PLOT_DPI = 150
PLOT_FIGSIZE_WIDTH = 10
PLOT_FIGSIZE_HEIGHT = 6
