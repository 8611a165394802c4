"""
Pydantic schema validation for forward multiplicity configuration files.

Provides strong typing, validation, and documentation for all config parameters.
Prevents runtime errors from invalid config values.
"""

from typing import Optional, Literal, Dict, Any, List
from pydantic import BaseModel, Field, field_validator, model_validator
from pathlib import Path

from .constants import (
    ETA_BINS_DEFAULT,
    ETA_MIN_DEFAULT,
    ETA_MAX_DEFAULT,
    PHI_BINS_DEFAULT,
    VERTEX_BINS_DEFAULT,
    VERTEX_MIN_DEFAULT,
    VERTEX_MAX_DEFAULT,
    LOW_FLUX_CUT_DEFAULT,
    SQRT_S_NN_DEFAULT,
    RECO_NOISE_FACTOR_DEFAULT,
    FALLBACK_NOISE_FACTOR,
    SHARING_LOW_CUT_DEFAULT,
    SHARING_LOW_CUT_LOW_FLUX_DEFAULT,
    SHARING_HIGH_CUT_DEFAULT,
    MAX_PARTICLES_DEFAULT,
    MAX_OUTLIER_FRACTION_DEFAULT,
    CENTRAL_OUTLIER_FRACTION_DEFAULT,
    CENTRAL_CUT_DEFAULT,
    EVENTPLANE_ETA_GAP_DEFAULT,
    EVENTPLANE_MIN_WEIGHT_DEFAULT,
    PLOT_DPI,
)
from .core.geometry import parse_ring_name
from .exceptions import ConfigFileNotFoundError, ConfigValidationError
from .flags import CorrectionFlags, CollisionSystem


class GeneralSettings(BaseModel):
    """General pipeline settings"""

    output_dir: str = Field(
        default="results",
        description="Directory for output files (histograms, tables, plots, logs)"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level"
    )

    @field_validator('output_dir')
    @classmethod
    def validate_output_dir(cls, v: str) -> str:
        """Ensure output directory is valid"""
        path = Path(v)
        if path.exists() and not path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {v}")
        return v


class TaskSettings(BaseModel):
    """Event pipeline switches"""

    enable_low_flux: bool = Field(
        default=True,
        description="Use low-flux specific code. If false, every event is treated as high flux"
    )

    do_timing: bool = Field(
        default=False,
        description="Record CPU time per stage into the timing histogram"
    )

    needed_corrections: List[str] = Field(
        default_factory=lambda: ["secondary_map", "acceptance", "noise_gain"],
        description="Correction maps applied every event (before the health probe)"
    )

    store_outputs: bool = Field(
        default=True,
        description="Write the table of stored per-event records at finalize"
    )

    @field_validator('needed_corrections')
    @classmethod
    def validate_corrections(cls, v: List[str]) -> List[str]:
        """Ensure every correction name is known"""
        CorrectionFlags.from_names(v)
        return [name.lower() for name in v]

    def correction_mask(self) -> CorrectionFlags:
        """Needed corrections as a flag set"""
        return CorrectionFlags.from_names(self.needed_corrections)


class HistogramSettings(BaseModel):
    """Binning of the working, summary and accumulator histograms"""

    eta_bins: int = Field(default=ETA_BINS_DEFAULT, ge=1, le=2000)
    eta_min: float = Field(default=ETA_MIN_DEFAULT)
    eta_max: float = Field(default=ETA_MAX_DEFAULT)
    phi_bins: int = Field(default=PHI_BINS_DEFAULT, ge=1, le=360)

    vertex_bins: int = Field(
        default=VERTEX_BINS_DEFAULT,
        ge=1,
        le=100,
        description="Number of vertex bins used to select correction maps"
    )
    vertex_min: float = Field(default=VERTEX_MIN_DEFAULT, description="Lower vertex edge (cm)")
    vertex_max: float = Field(default=VERTEX_MAX_DEFAULT, description="Upper vertex edge (cm)")

    @model_validator(mode='after')
    def validate_ranges(self):
        """Ensure axis lower edges are below upper edges"""
        if self.eta_min >= self.eta_max:
            raise ValueError(f"eta_min ({self.eta_min}) must be < eta_max ({self.eta_max})")
        if self.vertex_min >= self.vertex_max:
            raise ValueError(
                f"vertex_min ({self.vertex_min}) must be < vertex_max ({self.vertex_max})"
            )
        return self


class InspectorSettings(BaseModel):
    """Event inspection"""

    low_flux_cut: int = Field(
        default=LOW_FLUX_CUT_DEFAULT,
        ge=0,
        description="Events with fewer SPD clusters than this are low-flux"
    )

    use_pileup_flag: bool = Field(
        default=True,
        description="Propagate the event pile-up flag into the trigger bits"
    )

    collision_system: str = Field(
        default="unknown",
        description="Collision system used when the run header lacks one"
    )

    sqrt_s_nn: float = Field(
        default=SQRT_S_NN_DEFAULT,
        ge=0,
        description="Centre-of-mass energy per nucleon pair (GeV) when the run header lacks one"
    )

    @field_validator('collision_system')
    @classmethod
    def validate_system(cls, v: str) -> str:
        """Ensure the collision system is recognised"""
        system = CollisionSystem.parse(v)
        if system is CollisionSystem.UNKNOWN and v.lower() != 'unknown':
            raise ValueError(f"Unknown collision system '{v}'")
        return system.value


class FixerSettings(BaseModel):
    """Raw-data fixer"""

    reco_noise_factor: int = Field(default=RECO_NOISE_FACTOR_DEFAULT, ge=0, le=10)
    fallback_noise_factor: int = Field(
        default=FALLBACK_NOISE_FACTOR,
        ge=0,
        le=10,
        description="Noise factor set when the health probe disables the noise/gain correction"
    )
    recalculate_eta: bool = Field(default=True, description="Recompute strip eta for the event vertex")
    dead_strips: Dict[str, List[List[int]]] = Field(
        default_factory=dict,
        description="Per ring ('FMD1I', ...) list of [sector, strip] pairs to invalidate"
    )

    @field_validator('dead_strips')
    @classmethod
    def validate_dead_strips(cls, v: Dict[str, List[List[int]]]) -> Dict[str, List[List[int]]]:
        """Ensure ring names are known and entries are [sector, strip] pairs"""
        for name, pairs in v.items():
            parse_ring_name(name)
            for pair in pairs:
                if len(pair) != 2:
                    raise ValueError(f"Dead strip entry for {name} must be [sector, strip], got {pair}")
        return v


class SharingSettings(BaseModel):
    """Sharing filter (hit merging)"""

    low_cut: float = Field(default=SHARING_LOW_CUT_DEFAULT, ge=0)
    low_cut_low_flux: float = Field(default=SHARING_LOW_CUT_LOW_FLUX_DEFAULT, ge=0)
    high_cut: float = Field(default=SHARING_HIGH_CUT_DEFAULT, gt=0)
    merge_shared: bool = Field(default=True, description="Merge signals shared by adjacent strips")

    @model_validator(mode='after')
    def validate_cut_ordering(self):
        """Ensure zero-suppression cuts are below the sharing cut"""
        for name in ('low_cut', 'low_cut_low_flux'):
            value = getattr(self, name)
            if value >= self.high_cut:
                raise ValueError(f"{name} ({value}) must be < high_cut ({self.high_cut})")
        return self


class DensitySettings(BaseModel):
    """Density calculator"""

    max_particles: int = Field(default=MAX_PARTICLES_DEFAULT, ge=1)
    max_outlier_fraction: float = Field(default=MAX_OUTLIER_FRACTION_DEFAULT, gt=0, le=1)
    central_outlier_fraction: float = Field(default=CENTRAL_OUTLIER_FRACTION_DEFAULT, gt=0, le=1)
    central_cut: float = Field(
        default=CENTRAL_CUT_DEFAULT,
        ge=0,
        le=100,
        description="Events below this centrality (%) use central_outlier_fraction"
    )
    use_poisson: bool = Field(default=True, description="Use the Poisson estimate for high-flux events")


class EventPlaneSettings(BaseModel):
    """Reaction-plane finder"""

    eta_gap: float = Field(default=EVENTPLANE_ETA_GAP_DEFAULT, ge=0)
    min_weight: float = Field(default=EVENTPLANE_MIN_WEIGHT_DEFAULT, gt=0)


class CorrectionSettings(BaseModel):
    """Correction maps"""

    maps_file: Optional[str] = Field(
        default=None,
        description="numpy .npz archive with per ring, per vertex bin maps. None = unit maps"
    )


class ExportSettings(BaseModel):
    """Run-end output"""

    write_xlsx: bool = Field(default=True)
    generate_plots: bool = Field(default=True)
    plot_dpi: int = Field(default=PLOT_DPI, ge=72, le=600)


class ForwardMultConfig(BaseModel):
    """Complete forward multiplicity pipeline configuration"""

    general: GeneralSettings = Field(default_factory=GeneralSettings)
    task: TaskSettings = Field(default_factory=TaskSettings)
    histograms: HistogramSettings = Field(default_factory=HistogramSettings)
    inspector: InspectorSettings = Field(default_factory=InspectorSettings)
    fixer: FixerSettings = Field(default_factory=FixerSettings)
    sharing: SharingSettings = Field(default_factory=SharingSettings)
    density: DensitySettings = Field(default_factory=DensitySettings)
    eventplane: EventPlaneSettings = Field(default_factory=EventPlaneSettings)
    corrections: CorrectionSettings = Field(default_factory=CorrectionSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'ForwardMultConfig':
        """Load and validate config from YAML file"""
        import yaml

        yaml_file = Path(yaml_path)
        if not yaml_file.exists():
            raise ConfigFileNotFoundError(str(yaml_path))

        with open(yaml_file, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        if not isinstance(raw_config, dict):
            raise ConfigValidationError(
                '<root>', type(raw_config).__name__, 'top level must be a mapping of sections'
            )

        return cls(**raw_config)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ForwardMultConfig':
        """Load and validate config from dictionary"""
        return cls(**config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Export config to dictionary"""
        return self.model_dump()


def load_config(config_path: str) -> ForwardMultConfig:
    """
    Load and validate forward multiplicity config.

    Args:
        config_path: Path to YAML config file

    Returns:
        Validated ForwardMultConfig object

    Raises:
        ConfigFileNotFoundError: If config file doesn't exist
        ConfigValidationError: If the file is not a mapping of sections
        ValidationError: If config contains invalid values
    """
    return ForwardMultConfig.from_yaml(config_path)
