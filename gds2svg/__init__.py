"""Read GDSII stream files, flatten their hierarchy and write them as SVG."""
__version__ = "0.1.0"
