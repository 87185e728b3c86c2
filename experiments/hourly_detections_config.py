# hourly_detections_config.py
"""
Default configuration for hourly_detections.py.
Edit these values during exploration so you never need CLI args.
"""

DETECTIONS_CSV = "data/detections.csv"
OUT_CSV = "diel_results/hourly_detections.csv"
PLOT = "diel_results/hourly_detections.png"

# Consecutive detections of a species at a site closer than this are one event
INDEPENDENCE_MINUTES = 30
