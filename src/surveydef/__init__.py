"""
Survey Definition Engine

Versioned survey definitions: the version lifecycle, the question graph
and its structural invariants, repeat-group expansion, placeholder
resolution and structure-preserving duplication.

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - HTTP routing or authentication
    - Document or file storage
    - UI rendering

Operations take a survey snapshot and return a new one.
Persistence is a collaborator passed in by the caller.
"""

__version__ = "0.1.0"
