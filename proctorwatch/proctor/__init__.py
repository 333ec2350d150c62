"""
Proctoring Module

Monitors a remote candidate during an unattended exam or interview by
turning face-mesh and object-detection results into debounced violations:
- Face absence (sustained)
- Looking away (sustained, single face only)
- Multiple faces (on entering the episode)
- Phone, book and extra devices (every sampled batch)

Produces an Integrity Score (0-100) for each session from its violation log.
"""

from .api import router

__all__ = ["router"]
