# =============================================================================
# GLOBAL CONSTANTS & SIMULATION LIMITS
# =============================================================================
# Rates are per step unless stated otherwise; depths are in brush water units.

# --- Wet / dry thresholds ---
DRY_EPSILON = 1e-3            # Below this depth a cell is dry paper
FLOW_MIN_DEPTH = 1e-2         # Donor depth needed for velocity-driven flux
CAPILLARY_MIN_DEPTH = 5e-2    # Donor depth needed for capillary spreading
WET_SHEEN_THRESHOLD = 0.05    # Depth above which the compositor adds shine
TINY = 1e-8

# --- Fluid solver ---
PAPER_RELIEF = 0.05           # Contribution of fiber height to the pressure head
VELOCITY_DAMPING = 0.15       # Friction per unit time on wet cells
DRY_VELOCITY_DECAY = 0.5      # Velocity kept per step on dry cells
RELAX_STRENGTH = 0.5          # Fraction of the divergence correction applied
MAX_SPEED = 8.0               # Cells per unit time
MAX_COURANT = 0.25            # Max fraction of a cell crossed per step
MAX_OUTFLOW = 0.5             # Max fraction of a cell's water leaving per step
CAPILLARY_RATE = 0.05

# --- Pigment transport ---
PIGMENT_DIFFUSION = 0.6       # Per unit time, scaled by wetness
WET_HALF_DEPTH = 0.25         # Depth at which diffusion runs at half speed
MAX_DIFFUSION_RATE = 0.15     # Per face
EDGE_DRIFT_RATE = 0.08
MAX_EDGE_DRIFT = 0.05         # Per face
GRANULATION_GAIN = 1.0
EDGE_DEPOSIT_GAIN = 4.0       # Deposition boost at drying fronts
THIN_FILM_DEPTH = 0.1         # Films thinner than this deposit faster
MAX_DEPOSIT_RATE = 0.5
BACKRUN_MIN_DEPTH = 0.005     # Films in this depth band lose pigment to wetter neighbors
BACKRUN_MAX_DEPTH = 0.05
BACKRUN_RATE = 0.02           # Fraction of suspended pigment pushed per step

# --- Paper ---
PAPER_SEED_OFFSET = 7.1
PAPER_GRAIN_SCALE = 2.0
ABSORPTION_BASE = 0.3
ABSORPTION_RANGE = 0.6

# --- Brush footprint ---
BRUSH_ASPECT = 0.7            # Minor/major axis ratio of the stamp ellipse
BRUSH_SIGMA = 0.45            # Gaussian sigma as a fraction of the radius
STROKE_SPACING = 0.3          # Stamp spacing as a fraction of the radius
MIN_STROKE_SPACING = 0.5
STROKE_TAPER = 0.2            # Amount lost from start to end of a segment
VELOCITY_PRESSURE = 0.08      # Pressure loss per unit of stroke velocity
MIN_STROKE_PRESSURE = 0.2
STROKE_JITTER = 0.35          # Max per-axis stamp offset along moving strokes, in cells
MAX_BLEND_WEIGHT = 0.85
BLEND_EXCHANGE_RATE = 0.25    # Per face, scaled by the weaker blend weight

# --- Drag sessions ---
SESSION_FRAME_RATE = 60.0     # Velocity unit: cells per frame at this rate
VELOCITY_SMOOTHING = 0.3      # EMA weight of the newest sample
RADIUS_SPEED_FALLOFF = 0.04
MIN_RADIUS_SCALE = 0.6
MIN_SAMPLE_INTERVAL = 1e-3    # Seconds

# --- Compositor ---
REFERENCE_PIGMENT_MASS = 0.2  # Mass giving one unit of optical density
STAIN_STRENGTH = 0.85
WET_PIGMENT_VISIBILITY = 0.6
PIGMENT_ABSORB_FLOOR = 0.10
PIGMENT_NEUTRAL_DENSITY = 0.35
WET_SHEEN_GAIN = 0.08
