"""
CicadaGallery license activation and premium feature gating.
"""

__version__ = "1.0.0"
