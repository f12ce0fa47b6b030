"""Used-vehicle recon turnaround tracking from DMS exports."""

__version__ = "0.1.0"
