"""NetApp ONTAP quota and volume-space exporter for Prometheus."""

__version__ = "1.0.0"
