"""HeartWatch: streaming maternal/fetal heart-rate filtering, estimation and alarms."""

__version__ = "0.1.0"
