"""Radio show prep: playlist CSV in, researched talking points out."""

__version__ = "0.1.0"
