"""toolhub: sandboxed filesystem, GitHub and Figma tools behind one dispatch API."""

__version__ = "1.0.0"
