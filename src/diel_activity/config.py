# config.py
# Defaults shared by the occasion builder, the model scripts and the plots.
# Command-line scripts let a YAML file and CLI flags override these.

# ------------------------------------------------------------
# Input columns
# ------------------------------------------------------------

SESSION_COL = "session"
SITE_COL = "site"

# Detections table (one row per recorded event)
TIMESTAMP_COL = "timestamp"
SPECIES_COL = "species"

# Deployment table (one row per session/site)
SETUP_COL = "setup_date"
RETRIEVAL_COL = "retrieval_date"
MALFUNCTION_START_COL = "malfunction_start"
MALFUNCTION_END_COL = "malfunction_end"
ACTIVE_COL = "active"  # optional; a missing column means every camera is active

# None lets pandas infer the format; set e.g. "%Y-%m-%d %H:%M:%S" to be strict
TIMESTAMP_FORMAT = None

# ------------------------------------------------------------
# Occasions
# ------------------------------------------------------------

BIN_MINUTES = 60
WHOLE_DAYS = True           # bins cover the full first and last deployment day
ON_UNKNOWN_SITE = "raise"   # 'raise' or 'warn'

# ------------------------------------------------------------
# Models
# ------------------------------------------------------------

PERIOD_HOURS = 24.0
TRIG_HARMONICS = (1, 2, 3)  # pooled GLMs compared by AIC
SPLINE_DF = 8               # cyclic cubic spline basis size
GRID_POINTS = 241           # prediction grid over [0, 24]
CI_LEVEL = 0.95
GH_POINTS = 40              # Gauss-Hermite nodes for marginal means

# Priors for the variational Bayes mixed models (statsmodels defaults)
VCP_PRIOR_SD = 1.0
FE_PRIOR_SD = 2.0

# ------------------------------------------------------------
# Output
# ------------------------------------------------------------

OUTPUT_DIR = "diel_results"
PLOT_DPI = 200
