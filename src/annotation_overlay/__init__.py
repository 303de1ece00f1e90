"""
Annotation Overlay - vector shape annotation on top of a pannable, zoomable image.

Built with PyQt6. Shapes are stored in image space and re-projected onto the
viewport on every redraw, so they stay anchored to image content while the
user pans and zooms.
"""

__version__ = "1.0.0"
__author__ = "Annotation Overlay Team"
